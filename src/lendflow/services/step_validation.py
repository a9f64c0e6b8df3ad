"""Per-step validation of activation wizard payloads.

Each wizard step has its own pydantic model tagged with ``step``. The
models together form the StepPayload tagged union. Validation is pure:
it collects every violation for the step and never touches storage.

Example:
    result = validate_step(1, {"full_name": "Ada Lovelace", ...})
    if not result.is_valid:
        for error in result.errors:
            print(error.field, error.code, error.message)
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date
from typing import Annotated, Any, ClassVar, Literal, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationInfo,
    field_validator,
)
from pydantic import ValidationError as PydanticValidationError
from pydantic_core import PydanticCustomError

from lendflow.services.errors import FieldError, InvalidStepError

NAME_PATTERN = re.compile(r"^[a-zA-Z\s\-']+$")
ALPHANUMERIC_PATTERN = re.compile(r"^[A-Z0-9]+$")
SEPARATOR_PATTERN = re.compile(r"[\s\-]")

GENDERS = frozenset({"male", "female"})
MARITAL_STATUSES = frozenset({"single", "married", "divorced", "widowed"})
ID_TYPES = frozenset({"nic", "passport", "driver_license"})
ACCOUNT_TYPES = frozenset({"bank", "ewallet", "custom"})

MIN_AGE = 18
MAX_AGE = 120
MAX_RELATIVES = 3

# pydantic's built-in error types mapped onto our codes
_PYDANTIC_CODES = {
    "missing": "required",
    "string_type": "invalid_type",
    "bool_type": "invalid_type",
    "bool_parsing": "invalid_type",
    "list_type": "invalid_type",
    "model_type": "invalid_type",
    "dict_type": "invalid_type",
    "date_type": "invalid_date",
    "date_parsing": "invalid_date",
    "date_from_datetime_parsing": "invalid_date",
    "date_from_datetime_inexact": "invalid_date",
}


def _required(value: Any, label: str) -> Any:
    if value is None or value == "":
        raise PydanticCustomError("required", "{label} is required", {"label": label})
    return value


def _check_name(value: str | None, label: str) -> str:
    value = _required(value, label)
    if len(value) < 2:
        raise PydanticCustomError(
            "too_short", "{label} must be at least 2 characters", {"label": label}
        )
    if len(value) > 50:
        raise PydanticCustomError(
            "too_long", "{label} must be at most 50 characters", {"label": label}
        )
    if not NAME_PATTERN.match(value):
        raise PydanticCustomError(
            "invalid_name",
            "{label} may only contain letters, spaces, hyphens and apostrophes",
            {"label": label},
        )
    return value


def _check_choice(value: str | None, label: str, choices: frozenset[str], code: str) -> str:
    value = _required(value, label).lower()
    if value not in choices:
        raise PydanticCustomError(
            code,
            "{label} must be one of: {choices}",
            {"label": label, "choices": ", ".join(sorted(choices))},
        )
    return value


def _clean_identifier(value: str | None, label: str, min_len: int, max_len: int, code: str) -> str:
    cleaned = SEPARATOR_PATTERN.sub("", _required(value, label)).upper()
    if not (min_len <= len(cleaned) <= max_len) or not ALPHANUMERIC_PATTERN.match(cleaned):
        raise PydanticCustomError(
            code,
            "{label} must be {min_len}-{max_len} letters or digits",
            {"label": label, "min_len": min_len, "max_len": max_len},
        )
    return cleaned


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


class StepModel(BaseModel):
    """Common configuration for step payloads."""

    model_config = ConfigDict(
        str_strip_whitespace=True,
        validate_default=True,
        extra="ignore",
    )

    step: int

    def profile_fields(self) -> dict[str, Any]:
        """Column values this step writes on the activation profile."""
        return self.model_dump(exclude={"step"})

    def warnings(self) -> list[FieldError]:
        return []


class Step1Payload(StepModel):
    """Personal information."""

    step: Literal[1] = 1
    full_name: str | None = None
    gender: str | None = None
    date_of_birth: date | None = None
    marital_status: str | None = None
    nationality: str | None = None
    agreed_to_terms: bool = False

    @field_validator("full_name")
    @classmethod
    def validate_full_name(cls, v: str | None) -> str:
        return _check_name(v, "Full name")

    @field_validator("gender")
    @classmethod
    def validate_gender(cls, v: str | None) -> str:
        return _check_choice(v, "Gender", GENDERS, "invalid_gender")

    @field_validator("marital_status")
    @classmethod
    def validate_marital_status(cls, v: str | None) -> str:
        return _check_choice(v, "Marital status", MARITAL_STATUSES, "invalid_choice")

    @field_validator("date_of_birth", mode="before")
    @classmethod
    def blank_date_of_birth(cls, v: Any) -> Any:
        return _blank_to_none(v)

    @field_validator("date_of_birth")
    @classmethod
    def validate_date_of_birth(cls, v: date | None, info: ValidationInfo) -> date:
        v = _required(v, "Date of birth")
        today = (info.context or {}).get("today") or date.today()
        if v > today:
            raise PydanticCustomError(
                "invalid_date_of_birth", "Date of birth cannot be in the future"
            )
        age = today.year - v.year - ((today.month, today.day) < (v.month, v.day))
        if age < MIN_AGE:
            raise PydanticCustomError(
                "underage", "You must be at least {min_age} years old", {"min_age": MIN_AGE}
            )
        if age > MAX_AGE:
            raise PydanticCustomError(
                "invalid_date_of_birth", "Please enter a valid date of birth"
            )
        return v

    @field_validator("nationality", mode="before")
    @classmethod
    def blank_nationality(cls, v: Any) -> Any:
        return _blank_to_none(v)

    @field_validator("nationality")
    @classmethod
    def validate_nationality(cls, v: str | None) -> str | None:
        if v is not None and not (2 <= len(v) <= 50):
            raise PydanticCustomError(
                "invalid_nationality", "Nationality must be 2-50 characters"
            )
        return v

    @field_validator("agreed_to_terms")
    @classmethod
    def validate_terms(cls, v: bool) -> bool:
        if not v:
            raise PydanticCustomError(
                "terms_not_agreed", "You must agree to the terms and conditions"
            )
        return v

    def warnings(self) -> list[FieldError]:
        if self.nationality is None:
            return [
                FieldError(
                    field="nationality",
                    code="recommended",
                    message="Nationality helps speed up verification",
                )
            ]
        return []


class FamilyRelative(BaseModel):
    """One character reference."""

    model_config = ConfigDict(str_strip_whitespace=True, validate_default=True)

    full_name: str | None = None
    relationship: str | None = None
    phone_number: str | None = None

    @field_validator("full_name")
    @classmethod
    def validate_full_name(cls, v: str | None) -> str:
        return _check_name(v, "Relative name")

    @field_validator("relationship")
    @classmethod
    def validate_relationship(cls, v: str | None) -> str:
        v = _required(v, "Relationship")
        if len(v) < 2:
            raise PydanticCustomError("too_short", "Relationship must be at least 2 characters")
        return v

    @field_validator("phone_number")
    @classmethod
    def validate_phone_number(cls, v: str | None) -> str:
        v = _required(v, "Phone number")
        if len(v) < 10:
            raise PydanticCustomError(
                "invalid_phone", "Phone number must be at least 10 characters"
            )
        return v


class Step2Payload(StepModel):
    """Family and character references."""

    step: Literal[2] = 2
    family_relatives: list[FamilyRelative] = Field(default_factory=list)

    @field_validator("family_relatives", mode="before")
    @classmethod
    def none_to_empty(cls, v: Any) -> Any:
        return [] if v is None else v

    @field_validator("family_relatives")
    @classmethod
    def validate_count(cls, v: list[FamilyRelative]) -> list[FamilyRelative]:
        if not v:
            raise PydanticCustomError("required", "At least one family relative is required")
        if len(v) > MAX_RELATIVES:
            raise PydanticCustomError(
                "too_many", "At most {limit} family relatives are allowed", {"limit": MAX_RELATIVES}
            )
        return v


class Step3Payload(StepModel):
    """Residence."""

    step: Literal[3] = 3
    residing_country: str | None = Field(default=None, max_length=100)
    state_region_province: str | None = Field(default=None, max_length=100)
    town_city: str | None = Field(default=None, max_length=100)

    FIELD_LABELS: ClassVar[dict[str, str]] = {
        "residing_country": "Residing country",
        "state_region_province": "State, region or province",
        "town_city": "Town or city",
    }

    @field_validator("residing_country", "state_region_province", "town_city")
    @classmethod
    def validate_required(cls, v: str | None, info: ValidationInfo) -> str:
        return _required(v, cls.FIELD_LABELS[info.field_name])


class Step4Payload(StepModel):
    """Identity document details."""

    step: Literal[4] = 4
    id_type: str | None = None
    id_number: str | None = None

    @field_validator("id_type")
    @classmethod
    def validate_id_type(cls, v: str | None) -> str:
        return _check_choice(v, "ID type", ID_TYPES, "invalid_id_type")

    @field_validator("id_number")
    @classmethod
    def validate_id_number(cls, v: str | None) -> str:
        return _clean_identifier(v, "ID number", 5, 20, "invalid_id_number")


class Step5Payload(StepModel):
    """Payout account."""

    step: Literal[5] = 5
    account_type: str | None = None
    bank_name: str | None = Field(default=None, max_length=100)
    account_number: str | None = None
    account_holder_name: str | None = None

    @field_validator("account_type")
    @classmethod
    def validate_account_type(cls, v: str | None) -> str:
        return _check_choice(v, "Account type", ACCOUNT_TYPES, "invalid_account_type")

    @field_validator("bank_name")
    @classmethod
    def validate_bank_name(cls, v: str | None) -> str:
        return _required(v, "Bank name")

    @field_validator("account_number")
    @classmethod
    def validate_account_number(cls, v: str | None) -> str:
        return _clean_identifier(v, "Account number", 8, 20, "invalid_account_number")

    @field_validator("account_holder_name")
    @classmethod
    def validate_holder(cls, v: str | None) -> str:
        return _check_name(v, "Account holder name")


class Step6Payload(StepModel):
    """Signature."""

    step: Literal[6] = 6
    signature_data: str | None = None

    @field_validator("signature_data")
    @classmethod
    def validate_signature(cls, v: str | None) -> str:
        v = _required(v, "Signature")
        if not v.startswith("data:image/"):
            raise PydanticCustomError(
                "invalid_signature", "Signature must be an image data URL"
            )
        return v


StepPayload = Annotated[
    Union[
        Step1Payload,
        Step2Payload,
        Step3Payload,
        Step4Payload,
        Step5Payload,
        Step6Payload,
    ],
    Field(discriminator="step"),
]

# Dispatches on the step tag
STEP_ADAPTER: TypeAdapter[StepModel] = TypeAdapter(StepPayload)


@dataclass(frozen=True, slots=True)
class StepValidationResult:
    """Outcome of validating one step payload.

    Attributes:
        step: Step number that was validated.
        errors: Every blocking violation found.
        warnings: Non-blocking suggestions.
        payload: Normalized payload, present only when valid.
    """

    step: int
    errors: list[FieldError] = field(default_factory=list)
    warnings: list[FieldError] = field(default_factory=list)
    payload: StepModel | None = None

    @property
    def is_valid(self) -> bool:
        return not self.errors


def check_step_number(step: object) -> int:
    """Return the step as an int, or raise InvalidStepError."""
    if isinstance(step, bool) or not isinstance(step, int) or not 1 <= step <= 6:
        raise InvalidStepError(step)
    return step


def _to_field_errors(exc: PydanticValidationError, step: int) -> list[FieldError]:
    errors = []
    for error in exc.errors():
        parts = [str(part) for part in error["loc"]]
        # Union errors are located under the matched tag
        if parts and parts[0] == str(step):
            parts = parts[1:]
        loc = ".".join(parts) or "payload"
        code = _PYDANTIC_CODES.get(error["type"], error["type"])
        errors.append(FieldError(field=loc, code=code, message=error["msg"]))
    return errors


def validate_step(
    step: int,
    payload: BaseModel | dict[str, Any],
    *,
    today: date | None = None,
) -> StepValidationResult:
    """Validate a payload against the rules of one wizard step.

    Args:
        step: Step number, 1..6.
        payload: Raw field mapping, or an already-built step model.
        today: Reference date for age checks (defaults to today).

    Returns:
        StepValidationResult listing every violation.

    Raises:
        InvalidStepError: If step is outside 1..6.
    """
    step = check_step_number(step)
    data = payload.model_dump() if isinstance(payload, BaseModel) else dict(payload)

    tagged = data.get("step", step)
    if tagged != step:
        return StepValidationResult(
            step=step,
            errors=[
                FieldError(
                    field="step",
                    code="step_mismatch",
                    message=f"Payload is tagged for step {tagged}, not step {step}",
                )
            ],
        )
    data["step"] = step

    try:
        model = STEP_ADAPTER.validate_python(data, context={"today": today})
    except PydanticValidationError as e:
        return StepValidationResult(step=step, errors=_to_field_errors(e, step))

    return StepValidationResult(step=step, warnings=model.warnings(), payload=model)
