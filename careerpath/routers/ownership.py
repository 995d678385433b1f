from sqlalchemy.orm import Session

from careerpath.db.models import Company, Institution, Registration, RegistrationType
from careerpath.db.store import EntityStore
from careerpath.middlewares.auth_middleware import AuthState
from careerpath.utils.errors import AuthorizationError


def owned_institution(db: Session, institution_id: str, user: AuthState) -> Institution:
    institution = EntityStore(db).get(Institution, institution_id)
    if institution.owner_uid != user.user_id:
        raise AuthorizationError(
            "You do not manage this institution", "NOT_INSTITUTION_OWNER"
        )
    return institution


def owned_company(db: Session, company_id: str, user: AuthState) -> Company:
    company = EntityStore(db).get(Company, company_id)
    if company.owner_uid != user.user_id:
        raise AuthorizationError("You do not manage this company", "NOT_COMPANY_OWNER")
    return company


def registration_of_owned_institution(
    db: Session, registration_id: str, user: AuthState
) -> Registration:
    registration = EntityStore(db).get(Registration, registration_id)
    if registration.type != RegistrationType.COURSE:
        raise AuthorizationError(
            "You do not manage this registration", "NOT_REGISTRATION_OWNER"
        )
    owned_institution(db, registration.institution_id, user)
    return registration


def registration_of_owned_company(
    db: Session, registration_id: str, user: AuthState
) -> Registration:
    registration = EntityStore(db).get(Registration, registration_id)
    if registration.type != RegistrationType.JOB:
        raise AuthorizationError(
            "You do not manage this registration", "NOT_REGISTRATION_OWNER"
        )
    owned_company(db, registration.company_id, user)
    return registration
