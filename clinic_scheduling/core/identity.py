from dataclasses import dataclass

PATIENT_ROLE = 'patient'
DOCTOR_ROLE = 'doctor'
ROLES = {PATIENT_ROLE, DOCTOR_ROLE}


@dataclass(frozen=True)
class Caller:
    """An authenticated caller as supplied by the identity provider."""

    id: int
    role: str

    @property
    def is_patient(self) -> bool:
        return self.role == PATIENT_ROLE

    @property
    def is_doctor(self) -> bool:
        return self.role == DOCTOR_ROLE
