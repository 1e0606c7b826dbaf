import pytest

from urbanserve.core.enums import RoleName
from urbanserve.core.exceptions import IneligibleProfessionalException
from urbanserve.services.assignment_validator import AssignmentValidator


def test_eligible_professional_uses_base_price(db, professional, service, offering):
    check = AssignmentValidator(db).validate(professional.id, service.id)

    assert check.eligible is True
    assert check.effective_price == 500
    assert check.effective_duration_minutes == 60
    assert check.offering_id == offering.id
    assert check.reason is None


def test_offering_overrides_price_and_duration(db, professional, service, make_offering):
    make_offering(professional, service, price=650, duration_minutes=90)

    check = AssignmentValidator(db).validate(professional.id, service.id)

    assert check.eligible is True
    assert check.effective_price == 650
    assert check.effective_duration_minutes == 90


def test_unknown_service(db, professional):
    check = AssignmentValidator(db).validate(professional.id, "01HZZZZZZZZZZZZZZZZZZZZZZZ")

    assert check.eligible is False
    assert check.reason == "service_not_found"
    assert check.effective_price is None


@pytest.mark.parametrize(
    "profile_kwargs, reason",
    [
        ({"is_active": False}, "professional_inactive"),
        ({"is_verified": False}, "professional_unverified"),
    ],
)
def test_professional_state_blocks_assignment(
    db, make_profile, make_offering, service, profile_kwargs, reason
):
    pro = make_profile(RoleName.PROFESSIONAL, **profile_kwargs)
    make_offering(pro, service)

    check = AssignmentValidator(db).validate(pro.id, service.id)

    assert check.eligible is False
    assert check.reason == reason
    # Price is still reported so callers can show what was quoted
    assert check.effective_price == 500


def test_unverified_allowed_when_policy_disabled(db, make_profile, make_offering, service):
    pro = make_profile(RoleName.PROFESSIONAL, is_verified=False)
    make_offering(pro, service)

    check = AssignmentValidator(db, require_verified=False).validate(pro.id, service.id)

    assert check.eligible is True


def test_customer_cannot_be_assigned(db, customer, service):
    check = AssignmentValidator(db).validate(customer.id, service.id)

    assert check.reason == "not_a_professional"


def test_unknown_professional(db, service):
    check = AssignmentValidator(db).validate("01HYYYYYYYYYYYYYYYYYYYYYYY", service.id)

    assert check.reason == "professional_not_found"


def test_service_not_offered(db, professional, service):
    check = AssignmentValidator(db).validate(professional.id, service.id)

    assert check.reason == "service_not_offered"


def test_offering_unavailable(db, professional, service, make_offering):
    make_offering(professional, service, is_available=False)

    check = AssignmentValidator(db).validate(professional.id, service.id)

    assert check.reason == "offering_unavailable"


def test_inactive_service(db, professional, service, offering):
    service.is_active = False
    db.commit()

    check = AssignmentValidator(db).validate(professional.id, service.id)

    assert check.reason == "service_inactive"


def test_ensure_eligible_raises_with_reason(db, professional, service):
    with pytest.raises(IneligibleProfessionalException) as exc:
        AssignmentValidator(db).ensure_eligible(professional.id, service.id)

    assert exc.value.reason == "service_not_offered"
    assert exc.value.status_code == 422
