"""Tests for activation wizard step validation.

Tests cover:
- Every rule of the six wizard steps
- Normalization of identifiers and choices
- Collection of all violations in one pass
- Step number and step tag checks
"""

from datetime import date

import pytest
from pydantic import TypeAdapter

from lendflow.services.errors import InvalidStepError
from lendflow.services.step_validation import (
    Step1Payload,
    Step3Payload,
    StepPayload,
    check_step_number,
    validate_step,
)
from tests.factories import VALID_STEPS

TODAY = date(2026, 10, 19)


def step1(**overrides):
    return {**VALID_STEPS[1], **overrides}


def codes(result) -> dict[str, str]:
    return {error.field: error.code for error in result.errors}


# =============================================================================
# Step Numbers
# =============================================================================


class TestStepNumbers:
    """Tests for step number checks."""

    @pytest.mark.parametrize("step", [1, 2, 3, 4, 5, 6])
    def test_valid_steps_accepted(self, step):
        assert check_step_number(step) == step

    @pytest.mark.parametrize("step", [0, 7, -1, True, "1", 2.0, None])
    def test_invalid_steps_rejected(self, step):
        with pytest.raises(InvalidStepError):
            check_step_number(step)

    def test_validate_step_rejects_out_of_range(self):
        with pytest.raises(InvalidStepError):
            validate_step(7, {})

    def test_invalid_step_error_is_value_error(self):
        """Structural step errors are distinct from field violations."""
        with pytest.raises(ValueError):
            check_step_number(0)

    def test_payload_tagged_for_other_step(self):
        result = validate_step(2, {"step": 3, **VALID_STEPS[3]})
        assert not result.is_valid
        assert codes(result) == {"step": "step_mismatch"}

    def test_tagged_union_dispatches_on_step(self):
        payload = TypeAdapter(StepPayload).validate_python({"step": 3, **VALID_STEPS[3]})
        assert isinstance(payload, Step3Payload)

    @pytest.mark.parametrize("step", [1, 2, 3, 4, 5, 6])
    def test_validate_step_dispatches_through_the_union(self, step):
        result = validate_step(step, VALID_STEPS[step], today=TODAY)
        assert result.is_valid, result.errors
        assert result.payload.step == step
        assert type(result.payload).__name__ == f"Step{step}Payload"

    def test_union_errors_are_reported_without_the_tag(self):
        result = validate_step(3, {}, today=TODAY)
        assert result.errors
        assert not any(error.field.startswith("3") for error in result.errors)


# =============================================================================
# Step 1 - Personal Information
# =============================================================================


class TestStep1:
    """Tests for personal information rules."""

    def test_valid_payload(self):
        result = validate_step(1, step1(), today=TODAY)
        assert result.is_valid
        assert result.warnings == []
        assert isinstance(result.payload, Step1Payload)
        assert result.payload.date_of_birth == date(1990, 5, 15)

    def test_empty_payload_reports_every_required_field(self):
        result = validate_step(1, {}, today=TODAY)
        assert codes(result) == {
            "full_name": "required",
            "gender": "required",
            "date_of_birth": "required",
            "marital_status": "required",
            "agreed_to_terms": "terms_not_agreed",
        }

    def test_required_message_names_the_field(self):
        result = validate_step(1, step1(full_name="   "), today=TODAY)
        assert result.errors[0].message == "Full name is required"

    @pytest.mark.parametrize(
        ("name", "code"),
        [
            ("A", "too_short"),
            ("A" * 51, "too_long"),
            ("Ada 2nd", "invalid_name"),
            ("Ada@Lovelace", "invalid_name"),
        ],
    )
    def test_invalid_names(self, name, code):
        result = validate_step(1, step1(full_name=name), today=TODAY)
        assert codes(result) == {"full_name": code}

    def test_name_with_hyphen_and_apostrophe_accepted(self):
        result = validate_step(1, step1(full_name="Mary-Jane O'Neil"), today=TODAY)
        assert result.is_valid

    def test_gender_is_normalized(self):
        result = validate_step(1, step1(gender="Female"), today=TODAY)
        assert result.payload.gender == "female"

    def test_unknown_gender_rejected(self):
        result = validate_step(1, step1(gender="unknown"), today=TODAY)
        assert codes(result) == {"gender": "invalid_gender"}

    def test_unknown_marital_status_rejected(self):
        result = validate_step(1, step1(marital_status="complicated"), today=TODAY)
        assert codes(result) == {"marital_status": "invalid_choice"}

    def test_underage_rejected(self):
        result = validate_step(1, step1(date_of_birth="2010-01-01"), today=TODAY)
        assert codes(result) == {"date_of_birth": "underage"}

    def test_eighteenth_birthday_is_accepted(self):
        result = validate_step(1, step1(date_of_birth="2008-10-19"), today=TODAY)
        assert result.is_valid

    def test_day_before_eighteenth_birthday_rejected(self):
        result = validate_step(1, step1(date_of_birth="2008-10-20"), today=TODAY)
        assert codes(result) == {"date_of_birth": "underage"}

    def test_future_date_of_birth_rejected(self):
        result = validate_step(1, step1(date_of_birth="2027-01-01"), today=TODAY)
        assert codes(result) == {"date_of_birth": "invalid_date_of_birth"}

    def test_implausible_age_rejected(self):
        result = validate_step(1, step1(date_of_birth="1890-01-01"), today=TODAY)
        assert codes(result) == {"date_of_birth": "invalid_date_of_birth"}

    def test_malformed_date_rejected(self):
        result = validate_step(1, step1(date_of_birth="15/05/1990"), today=TODAY)
        assert codes(result) == {"date_of_birth": "invalid_date"}

    def test_terms_must_be_agreed(self):
        result = validate_step(1, step1(agreed_to_terms=False), today=TODAY)
        assert codes(result) == {"agreed_to_terms": "terms_not_agreed"}

    def test_missing_nationality_is_a_warning(self):
        data = step1()
        del data["nationality"]
        result = validate_step(1, data, today=TODAY)
        assert result.is_valid
        assert [(w.field, w.code) for w in result.warnings] == [("nationality", "recommended")]

    def test_short_nationality_rejected(self):
        result = validate_step(1, step1(nationality="X"), today=TODAY)
        assert codes(result) == {"nationality": "invalid_nationality"}

    def test_unknown_fields_are_ignored(self):
        result = validate_step(1, step1(favourite_colour="blue"), today=TODAY)
        assert result.is_valid
        assert "favourite_colour" not in result.payload.profile_fields()


# =============================================================================
# Step 2 - Family Relatives
# =============================================================================


class TestStep2:
    """Tests for family relative rules."""

    def relative(self, **overrides):
        return {**VALID_STEPS[2]["family_relatives"][0], **overrides}

    def test_valid_payload(self):
        result = validate_step(2, VALID_STEPS[2])
        assert result.is_valid
        assert result.payload.profile_fields()["family_relatives"][0]["full_name"] == "Anne Byron"

    def test_at_least_one_relative_required(self):
        result = validate_step(2, {"family_relatives": []})
        assert codes(result) == {"family_relatives": "required"}

    def test_missing_relatives_required(self):
        result = validate_step(2, {})
        assert codes(result) == {"family_relatives": "required"}

    def test_at_most_three_relatives(self):
        result = validate_step(2, {"family_relatives": [self.relative()] * 4})
        assert codes(result) == {"family_relatives": "too_many"}

    def test_nested_errors_carry_their_path(self):
        result = validate_step(
            2,
            {"family_relatives": [self.relative(), self.relative(phone_number="123")]},
        )
        assert codes(result) == {"family_relatives.1.phone_number": "invalid_phone"}

    def test_every_relative_field_checked(self):
        result = validate_step(2, {"family_relatives": [{}]})
        assert codes(result) == {
            "family_relatives.0.full_name": "required",
            "family_relatives.0.relationship": "required",
            "family_relatives.0.phone_number": "required",
        }


# =============================================================================
# Steps 3 to 6
# =============================================================================


class TestStep3:
    """Tests for residence rules."""

    def test_valid_payload(self):
        assert validate_step(3, VALID_STEPS[3]).is_valid

    def test_each_field_required(self):
        result = validate_step(3, {"residing_country": "Kenya"})
        assert codes(result) == {
            "state_region_province": "required",
            "town_city": "required",
        }
        messages = {e.field: e.message for e in result.errors}
        assert messages["town_city"] == "Town or city is required"

    def test_overlong_value_rejected(self):
        result = validate_step(3, {**VALID_STEPS[3], "town_city": "x" * 101})
        assert "town_city" in codes(result)


class TestStep4:
    """Tests for identity document detail rules."""

    def test_id_number_is_normalized(self):
        result = validate_step(4, VALID_STEPS[4])
        assert result.is_valid
        assert result.payload.id_number == "AB123456"

    def test_unknown_id_type_rejected(self):
        result = validate_step(4, {**VALID_STEPS[4], "id_type": "ssn"})
        assert codes(result) == {"id_type": "invalid_id_type"}

    @pytest.mark.parametrize("id_number", ["1234", "A" * 21, "AB12#456"])
    def test_invalid_id_numbers(self, id_number):
        result = validate_step(4, {**VALID_STEPS[4], "id_number": id_number})
        assert codes(result) == {"id_number": "invalid_id_number"}


class TestStep5:
    """Tests for payout account rules."""

    def test_account_number_is_normalized(self):
        result = validate_step(5, VALID_STEPS[5])
        assert result.is_valid
        assert result.payload.account_number == "1234567890"

    def test_unknown_account_type_rejected(self):
        result = validate_step(5, {**VALID_STEPS[5], "account_type": "crypto"})
        assert codes(result) == {"account_type": "invalid_account_type"}

    def test_short_account_number_rejected(self):
        result = validate_step(5, {**VALID_STEPS[5], "account_number": "1234567"})
        assert codes(result) == {"account_number": "invalid_account_number"}

    def test_holder_name_follows_name_rules(self):
        result = validate_step(5, {**VALID_STEPS[5], "account_holder_name": "Ada 2"})
        assert codes(result) == {"account_holder_name": "invalid_name"}

    def test_bank_name_required(self):
        result = validate_step(5, {**VALID_STEPS[5], "bank_name": ""})
        assert codes(result) == {"bank_name": "required"}


class TestStep6:
    """Tests for signature rules."""

    def test_valid_signature(self):
        assert validate_step(6, VALID_STEPS[6]).is_valid

    def test_signature_required(self):
        assert codes(validate_step(6, {})) == {"signature_data": "required"}

    def test_signature_must_be_image_data_url(self):
        result = validate_step(6, {"signature_data": "data:text/plain;base64,aGk="})
        assert codes(result) == {"signature_data": "invalid_signature"}

    def test_model_payload_accepted(self):
        payload = Step3Payload(**VALID_STEPS[3])
        result = validate_step(3, payload)
        assert result.is_valid
        assert result.payload == payload
