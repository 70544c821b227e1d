import enum
from datetime import datetime

from .database import db

WEEKDAYS = ('Monday', 'Tuesday', 'Wednesday', 'Thursday', 'Friday', 'Saturday', 'Sunday')


class Role(str, enum.Enum):
    PATIENT = 'patient'
    DOCTOR = 'doctor'
    ADMIN = 'admin'


class AppointmentStatus(str, enum.Enum):
    SCHEDULED = 'scheduled'
    COMPLETED = 'completed'
    CANCELLED = 'cancelled'

    @property
    def is_terminal(self):
        return self is not AppointmentStatus.SCHEDULED


def _enum_values(enum_cls):
    return [member.value for member in enum_cls]


class User(db.Model):
    __tablename__ = 'users'
    id = db.Column(db.Integer, primary_key=True)
    full_name = db.Column(db.String(120), nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False)
    password_hash = db.Column(db.String(128), nullable=False)
    role = db.Column(db.Enum(Role, name='user_role', values_callable=_enum_values), nullable=False)
    phone_number = db.Column(db.String(32))
    gender = db.Column(db.String(16))
    dob = db.Column(db.Date)
    is_active = db.Column(db.Boolean, default=True, nullable=False)
    refresh_token = db.Column(db.Text)   # only the latest session survives
    last_login = db.Column(db.DateTime)
    failed_login_attempts = db.Column(db.Integer, default=0, nullable=False)
    account_locked_until = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    patient = db.relationship('Patient', backref='user', uselist=False)
    doctor = db.relationship('Doctor', backref='user', uselist=False)

    def to_dict(self):
        return {
            'id': self.id,
            'full_name': self.full_name,
            'email': self.email,
            'role': self.role.value,
            'phone_number': self.phone_number,
            'gender': self.gender,
            'dob': self.dob.isoformat() if self.dob else None,
            'is_active': self.is_active,
            'created_at': _iso(self.created_at),
            'last_login': _iso(self.last_login),
        }

    def __repr__(self):
        return f'<User {self.email} ({self.role.value})>'


class Patient(db.Model):
    __tablename__ = 'patients'
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='RESTRICT'), primary_key=True)
    medical_history = db.Column(db.Text, default='')
    allergies = db.Column(db.Text, default='')
    emergency_contact = db.Column(db.String(255), default='')
    appointments = db.relationship('Appointment', backref='patient', lazy=True)

    def to_dict(self):
        data = self.user.to_dict()
        data.update({
            'medical_history': self.medical_history,
            'allergies': self.allergies,
            'emergency_contact': self.emergency_contact,
        })
        return data


class Doctor(db.Model):
    __tablename__ = 'doctors'
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='RESTRICT'), primary_key=True)
    specialization = db.Column(db.String(100), default='')
    license_number = db.Column(db.String(32), default='')
    experience_years = db.Column(db.Integer, default=0)
    appointments = db.relationship('Appointment', backref='doctor', lazy=True)
    slots = db.relationship('AvailabilitySlot', backref='doctor', lazy=True,
                            order_by='AvailabilitySlot.id')

    def to_dict(self):
        data = self.user.to_dict()
        data.update({
            'specialization': self.specialization,
            'license_number': self.license_number,
            'experience_years': self.experience_years,
        })
        return data


class AvailabilitySlot(db.Model):
    __tablename__ = 'doctor_availability'
    id = db.Column(db.Integer, primary_key=True)
    doctor_id = db.Column(db.Integer, db.ForeignKey('doctors.user_id', ondelete='RESTRICT'), nullable=False)
    available_day = db.Column(db.String(10), nullable=False)
    start_time = db.Column(db.Time, nullable=False)
    end_time = db.Column(db.Time, nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'available_day': self.available_day,
            'start_time': self.start_time.strftime('%H:%M'),
            'end_time': self.end_time.strftime('%H:%M'),
        }


class Appointment(db.Model):
    __tablename__ = 'appointments'
    id = db.Column(db.Integer, primary_key=True)
    patient_id = db.Column(db.Integer, db.ForeignKey('patients.user_id', ondelete='RESTRICT'), nullable=False)
    doctor_id = db.Column(db.Integer, db.ForeignKey('doctors.user_id', ondelete='RESTRICT'), nullable=False)
    appointment_time = db.Column(db.DateTime, nullable=False)
    status = db.Column(db.Enum(AppointmentStatus, name='appointment_status', values_callable=_enum_values),
                       nullable=False, default=AppointmentStatus.SCHEDULED)
    notes = db.Column(db.Text)
    cancellation_reason = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    def to_dict(self):
        return {
            'id': self.id,
            'patient_id': self.patient_id,
            'doctor_id': self.doctor_id,
            'patient_name': self.patient.user.full_name if self.patient else None,
            'doctor_name': self.doctor.user.full_name if self.doctor else None,
            'appointment_time': _iso(self.appointment_time),
            'status': self.status.value,
            'notes': self.notes,
            'cancellation_reason': self.cancellation_reason,
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at),
        }


def _iso(value):
    return value.isoformat() if value else None
