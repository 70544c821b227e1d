"""Request bodies accepted by the API.

Each model validates one operation's JSON body. The ``*Update`` models have
only optional fields; services apply the fields that were actually sent.
"""
from datetime import date, datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from .models import WEEKDAYS, AppointmentStatus

TIME_FORMAT = '%H:%M'


class _Body(BaseModel):
    model_config = ConfigDict(extra='ignore', str_strip_whitespace=True)


class RegisterRequest(_Body):
    full_name: str = Field(..., min_length=1, max_length=120)
    email: EmailStr
    password: str = Field(..., min_length=1)
    role: Literal['patient', 'doctor'] = 'patient'
    phone_number: Optional[str] = None
    gender: Optional[Literal['male', 'female', 'other']] = None
    dob: Optional[date] = None
    # patient profile
    medical_history: str = ''
    allergies: str = ''
    emergency_contact: str = ''
    # doctor profile
    specialization: str = ''
    license_number: str = ''
    experience_years: int = Field(0, ge=0, le=80)


class PatientCreate(RegisterRequest):
    role: Literal['patient'] = 'patient'


class DoctorCreate(RegisterRequest):
    role: Literal['doctor'] = 'doctor'


class LoginRequest(_Body):
    email: EmailStr
    password: str = Field(..., min_length=1)


class RefreshRequest(_Body):
    refresh_token: str = Field(..., min_length=1)


class ChangePasswordRequest(_Body):
    current_password: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=1)


class ProfileUpdate(_Body):
    full_name: Optional[str] = Field(None, min_length=1, max_length=120)
    email: Optional[EmailStr] = None
    phone_number: Optional[str] = None
    gender: Optional[Literal['male', 'female', 'other']] = None
    dob: Optional[date] = None


class PatientUpdate(ProfileUpdate):
    medical_history: Optional[str] = None
    allergies: Optional[str] = None
    emergency_contact: Optional[str] = None


class DoctorUpdate(ProfileUpdate):
    specialization: Optional[str] = None
    license_number: Optional[str] = None
    experience_years: Optional[int] = Field(None, ge=0, le=80)


class SlotIn(_Body):
    available_day: str
    start_time: str
    end_time: str

    @field_validator('available_day')
    @classmethod
    def known_weekday(cls, value):
        day = value.capitalize()
        if day not in WEEKDAYS:
            raise ValueError(f"available_day must be one of {', '.join(WEEKDAYS)}")
        return day

    @field_validator('start_time', 'end_time')
    @classmethod
    def wall_clock(cls, value):
        try:
            datetime.strptime(value, TIME_FORMAT)
        except ValueError:
            raise ValueError('time must use the HH:MM 24-hour format')
        return value

    def times(self):
        return (datetime.strptime(self.start_time, TIME_FORMAT).time(),
                datetime.strptime(self.end_time, TIME_FORMAT).time())


class AvailabilityRequest(_Body):
    slots: List[SlotIn]


class AppointmentCreate(_Body):
    patient_id: int
    doctor_id: int
    appointment_time: datetime
    notes: Optional[str] = None


class AppointmentUpdate(_Body):
    appointment_time: Optional[datetime] = None
    notes: Optional[str] = None
    status: Optional[AppointmentStatus] = None


class CancelRequest(_Body):
    reason: Optional[str] = None
