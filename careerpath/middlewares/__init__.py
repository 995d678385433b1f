from .request_id_middleware import *
from .security_middleware import *
from .auth_middleware import *

__all__ = [
    "RequestIDMiddleware",
    "SecurityHeadersMiddleware",
    "IdentityMiddleware",
    "AuthState",
    "get_current_user",
    "require_student",
    "require_institution",
    "require_company",
    "require_admin",
    "require_any_user",
]
