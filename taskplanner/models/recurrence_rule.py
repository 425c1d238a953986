"""Recurrence rule value model.

The rule is stored as a JSON blob on the template row (``recurrence_rule_json``)
and is only encoded/decoded at that boundary; everything else works with
``RecurrenceRule`` instances.
"""
import re
from datetime import date, time
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from taskplanner.exceptions import InvalidRecurrenceRuleError, RuleParseError

TIME_OF_DAY_PATTERN = re.compile(r"^(\d{1,2}):(\d{2})$")


class Frequency(str, Enum):
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"


class EndType(str, Enum):
    NEVER = "NEVER"
    UNTIL = "UNTIL"
    COUNT = "COUNT"


class Weekday(str, Enum):
    MO = "MO"
    TU = "TU"
    WE = "WE"
    TH = "TH"
    FR = "FR"
    SA = "SA"
    SU = "SU"

    @property
    def python_weekday(self) -> int:
        """Weekday number as returned by ``date.weekday()`` (Monday is 0)."""
        return list(Weekday).index(self)


class RecurrenceRule(BaseModel):
    """Declarative description of a repeating schedule."""

    model_config = ConfigDict(populate_by_name=True)

    frequency: Frequency
    interval: int = Field(default=1, ge=1, description="Every N days/weeks/months")
    by_weekday: List[Weekday] = Field(default_factory=list, alias="byWeekday")
    time_of_day: Optional[str] = Field(default=None, alias="timeOfDay")  # HH:MM
    end_type: EndType = Field(default=EndType.NEVER, alias="endType")
    until_date: Optional[date] = Field(default=None, alias="untilDate")
    count: Optional[int] = None

    @field_validator("frequency", "end_type", mode="before")
    @classmethod
    def _upper_enum(cls, v):
        return v.upper() if isinstance(v, str) else v

    @field_validator("by_weekday", mode="before")
    @classmethod
    def _normalize_weekdays(cls, v):
        if v is None:
            return []
        if isinstance(v, str):
            v = [part for part in v.split(",") if part.strip()]
        elif not isinstance(v, (list, tuple)):
            raise ValueError("byWeekday must be a list of weekday codes")
        # Deduplicate but preserve order
        out = []
        for day in v:
            code = day.strip().upper() if isinstance(day, str) else day
            if code not in out:
                out.append(code)
        return out

    @field_validator("time_of_day", mode="before")
    @classmethod
    def _validate_time_of_day(cls, v):
        if v is None or v == "":
            return None
        if isinstance(v, time):
            return v.strftime("%H:%M")
        match = TIME_OF_DAY_PATTERN.match(str(v).strip())
        if not match:
            raise ValueError("timeOfDay must look like HH:MM")
        hour, minute = int(match.group(1)), int(match.group(2))
        if hour > 23 or minute > 59:
            raise ValueError("timeOfDay is out of range")
        return f"{hour:02d}:{minute:02d}"

    @field_validator("until_date", mode="before")
    @classmethod
    def _strip_time_from_until(cls, v):
        # Rules written by the desktop client store a full ISO timestamp
        if isinstance(v, str) and "T" in v:
            return v.split("T", 1)[0]
        return v or None

    @model_validator(mode="after")
    def _normalize_end_condition(self):
        if self.end_type != EndType.COUNT:
            self.count = None
        if self.end_type != EndType.UNTIL:
            self.until_date = None
        if self.frequency != Frequency.WEEKLY:
            self.by_weekday = []

        if self.end_type == EndType.COUNT:
            if self.count is None:
                raise ValueError("COUNT end type requires a count")
            if self.count < 1:
                raise ValueError("count must be a positive integer")
        if self.end_type == EndType.UNTIL and self.until_date is None:
            raise ValueError("UNTIL end type requires an untilDate")
        return self

    @property
    def clock_time(self) -> Optional[time]:
        """``time_of_day`` as a ``datetime.time``, if set."""
        if not self.time_of_day:
            return None
        hour, minute = self.time_of_day.split(":")
        return time(int(hour), int(minute))

    def weekday_indexes(self) -> set:
        return {day.python_weekday for day in self.by_weekday}

    def to_json(self) -> str:
        """Encode for storage on the template row."""
        return self.model_dump_json(by_alias=True, exclude_none=True)

    @classmethod
    def from_dict(cls, data: dict) -> "RecurrenceRule":
        """Build a rule from user input, rejecting invalid combinations."""
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise InvalidRecurrenceRuleError(_summarize(e)) from e

    @classmethod
    def from_json(cls, raw: Optional[str], template_id: Optional[int] = None) -> "RecurrenceRule":
        """Decode a stored rule blob."""
        if not raw:
            raise RuleParseError("Template has no recurrence rule", template_id=template_id)
        try:
            return cls.model_validate_json(raw)
        except ValidationError as e:
            raise RuleParseError(_summarize(e), template_id=template_id) from e


def _summarize(error: ValidationError) -> str:
    parts = []
    for item in error.errors():
        loc = ".".join(str(p) for p in item.get("loc", ()) if p != "__root__")
        parts.append(f"{loc}: {item['msg']}" if loc else item["msg"])
    return "; ".join(parts)
