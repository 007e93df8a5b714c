from typing import Union

from clinicdocs.models.user import User
from clinicdocs.models.doctor import Doctor
from clinicdocs.models.patient import Patient
from clinicdocs.models.appointment import Appointment
from clinicdocs.models.document import DocumentKind, DocumentStatus, DocumentSequence, VerificationCode
from clinicdocs.models.prescription import Prescription, PrescriptionItem
from clinicdocs.models.certificate import Certificate, CertificateType

IssuableDocument = Union[Prescription, Certificate]

DOCUMENT_MODELS: dict[DocumentKind, type[IssuableDocument]] = {
    DocumentKind.prescription: Prescription,
    DocumentKind.certificate: Certificate,
}
