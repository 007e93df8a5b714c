import json
from datetime import date, datetime, timedelta

from starlette.requests import Request

from clinicdocs.api.exception_handlers import document_error_handler
from clinicdocs.services.lifecycle import utcnow

from conftest import auth, tamper_payload

RX_BODY = {
    "medications": [
        {"drug": "Dipirona 500mg", "dose": "1 comprimido", "frequency": "6/6h", "duration": "3 dias"},
    ],
    "diagnosis": "Cefaleia tensional",
}


def rx_body(parties, **extra):
    return {"patient_id": parties.patient, "doctor_id": parties.doctor, **RX_BODY, **extra}


async def create_rx(client, parties, **extra):
    r = await client.post("/prescriptions", json=rx_body(parties, **extra), headers=auth(parties.doctor_user))
    assert r.status_code == 201, r.text
    return r.json()


async def test_health(client):
    r = await client.get("/health")
    assert r.json() == {"status": "ok"}


async def test_create_prescription(client, parties):
    body = await create_rx(client, parties)

    assert body["document_number"].startswith(f"RX-{utcnow().year}-")
    assert body["status"] == "active"
    assert body["effective_status"] == "active"
    assert body["qr_code"].startswith("data:image/png;base64,")
    assert body["medications"][0]["drug"] == "Dipirona 500mg"
    assert body["doctor"]["name"] == "Dra. Ana Souza"
    issued = datetime.fromisoformat(body["issued_at"])
    assert datetime.fromisoformat(body["valid_until"]) == issued + timedelta(days=30)


async def test_issuing_requires_authentication(client, parties):
    r = await client.post("/prescriptions", json=rx_body(parties))
    assert r.status_code == 401
    assert r.json()["error"] == "unauthorized"

    r = await client.post("/prescriptions", json=rx_body(parties), headers={"Authorization": "Bearer nope"})
    assert r.status_code == 401


async def test_issuing_requires_privileged_role(client, parties):
    for user in (parties.patient_user, parties.pharmacist_user):
        r = await client.post("/prescriptions", json=rx_body(parties), headers=auth(user))
        assert r.status_code == 403


async def test_doctor_cannot_sign_for_another_doctor(client, parties):
    r = await client.post("/prescriptions", json=rx_body(parties), headers=auth(parties.other_doctor_user))
    assert r.status_code == 403
    assert r.json()["error"] == "forbidden"


async def test_domain_errors_keep_their_kind(client, parties):
    r = await client.post(
        "/prescriptions", json=rx_body(parties, patient_id="missing"), headers=auth(parties.admin_user),
    )
    assert r.status_code == 404
    assert r.json() == {"error": "not_found", "message": "Patient not found"}

    r = await client.post(
        "/prescriptions", json=rx_body(parties, appointment_id=parties.other_appointment),
        headers=auth(parties.admin_user),
    )
    assert r.status_code == 400
    assert r.json()["error"] == "validation"


async def test_request_validation(client, parties):
    r = await client.post(
        "/prescriptions", json=rx_body(parties, medications=[]), headers=auth(parties.doctor_user),
    )
    assert r.status_code == 422
    assert r.json()["error"] == "validation"


async def test_verify_contract(client, parties):
    rx = await create_rx(client, parties)

    r = await client.post("/verify", json={"verification_code": rx["verification_code"]})
    assert r.status_code == 200
    body = r.json()
    assert body["found"] is True and body["verified"] is True
    assert body["data"]["document_number"] == rx["document_number"]
    assert body["data"]["patient_name"] == "João Silva"
    assert "medications" not in body["data"] and "diagnosis" not in body["data"]

    r = await client.post("/verify", json={"verification_code": "ZZZZZZZZ"})
    assert r.status_code == 404
    assert r.json() == {"found": False, "verified": False, "data": None}

    r = await client.post("/verify", json={})
    assert r.status_code == 400


async def test_verify_cancelled_is_negative_but_found(client, parties):
    rx = await create_rx(client, parties)
    r = await client.put(
        f"/prescriptions/{rx['id']}/cancel", json={"reason": "troca de medicação"},
        headers=auth(parties.doctor_user),
    )
    assert r.status_code == 200
    assert r.json()["status"] == "cancelled"

    r = await client.post("/verify", json={"document_number": rx["document_number"],
                                           "verification_code": rx["verification_code"]})
    assert r.status_code == 200
    assert r.json()["verified"] is False
    assert r.json()["data"]["status"] == "cancelled"


async def test_verify_scanned_payload(client, parties):
    rx = await create_rx(client, parties)
    r = await client.post("/verify/payload", json={"payload": rx["qr_payload"]})
    assert r.status_code == 200
    assert r.json()["verified"] is True

    r = await client.post("/verify/payload", json={"payload": tamper_payload(rx["qr_payload"], kind="certificate")})
    assert r.status_code == 400


async def test_pharmacist_dispenses_once(client, parties):
    rx = await create_rx(client, parties)
    url = f"/prescriptions/{rx['id']}/dispense"

    r = await client.put(url, json={"pharmacy": "Farmácia Central"}, headers=auth(parties.patient_user))
    assert r.status_code == 403

    r = await client.put(url, json={"pharmacy": "Farmácia Central"}, headers=auth(parties.pharmacist_user))
    assert r.status_code == 200
    assert r.json()["status"] == "dispensed"
    assert r.json()["dispensed_by"] == "Farmácia Central"

    r = await client.put(url, json={"pharmacy": "Farmácia Central"}, headers=auth(parties.pharmacist_user))
    assert r.status_code == 400
    assert r.json() == {"error": "validation", "message": "already dispensed"}

    r = await client.put(f"/prescriptions/{rx['id']}/cancel", json={}, headers=auth(parties.doctor_user))
    assert r.status_code == 400


async def test_pharmacist_cannot_cancel(client, parties):
    rx = await create_rx(client, parties)
    r = await client.put(f"/prescriptions/{rx['id']}/cancel", json={}, headers=auth(parties.pharmacist_user))
    assert r.status_code == 403


async def test_get_prescription(client, parties):
    rx = await create_rx(client, parties)

    r = await client.get(f"/prescriptions/{rx['id']}", headers=auth(parties.pharmacist_user))
    assert r.status_code == 200
    assert r.json()["document_number"] == rx["document_number"]

    r = await client.get("/prescriptions/missing", headers=auth(parties.doctor_user))
    assert r.status_code == 404


async def test_list_filters_by_effective_status(client, db, parties, rx_data):
    from clinicdocs.services import issuance

    old = await issuance.issue_prescription(db, rx_data(), now=datetime(2024, 1, 1, 9, 0))
    fresh = await create_rx(client, parties)
    headers = auth(parties.admin_user)

    r = await client.get("/prescriptions", params={"status": "expired"}, headers=headers)
    assert [p["id"] for p in r.json()] == [old.id]
    assert r.json()[0]["status"] == "active"
    assert r.json()[0]["effective_status"] == "expired"

    r = await client.get("/prescriptions", params={"status": "active"}, headers=headers)
    assert [p["id"] for p in r.json()] == [fresh["id"]]

    r = await client.get(
        "/prescriptions", params={"date_from": "2024-01-01", "date_to": "2024-01-01"}, headers=headers,
    )
    assert [p["id"] for p in r.json()] == [old.id]

    r = await client.get("/prescriptions/stats", headers=headers)
    stats = r.json()
    assert stats["total"] == 2
    assert stats["active"] == 1 and stats["expired"] == 1
    assert stats["recent"] == 1


async def test_certificate_end_to_end(client, parties):
    headers = auth(parties.doctor_user)
    r = await client.post("/medical-certificates", headers=headers, json={
        "patient_id": parties.patient,
        "doctor_id": parties.doctor,
        "appointment_id": parties.appointment,
        "certificate_type": "trabalho",
        "rest_days": 5,
        "start_date": "2024-01-01",
        "auto_calculate_end_date": True,
        "diagnosis": "Lombalgia",
    })
    assert r.status_code == 201, r.text
    cert = r.json()

    assert cert["status"] == "active"
    assert cert["end_date"] == "2024-01-06"
    assert datetime.fromisoformat(cert["valid_until"]).date() == date(2024, 1, 6)
    assert cert["qr_payload"] and cert["qr_code"]
    assert cert["document_number"].startswith("MC-")

    r = await client.get("/medical-certificates", params={"certificate_type": "trabalho"}, headers=headers)
    assert [c["id"] for c in r.json()] == [cert["id"]]

    r = await client.put(f"/medical-certificates/{cert['id']}/cancel", json={"reason": "x"}, headers=headers)
    assert r.status_code == 400  # ya venció en 2024
    assert "expired" in r.json()["message"]


async def test_certificate_cancel(client, parties):
    headers = auth(parties.admin_user)
    today = utcnow().date().isoformat()
    r = await client.post("/medical-certificates", headers=headers, json={
        "patient_id": parties.patient,
        "doctor_id": parties.other_doctor,
        "certificate_type": "comparecimento",
        "start_date": today,
        "end_date": today,
    })
    assert r.status_code == 201, r.text
    cert = r.json()

    r = await client.put(f"/medical-certificates/{cert['id']}/cancel", json={"reason": "duplicado"}, headers=headers)
    assert r.status_code == 200
    assert r.json()["status"] == "cancelled"
    assert r.json()["cancelled_reason"] == "duplicado"

    r = await client.post("/verify", json={"document_number": cert["document_number"]})
    assert r.status_code == 200
    assert r.json()["verified"] is False


async def test_document_error_handler_falls_back_to_internal_error():
    request = Request({"type": "http", "method": "GET", "path": "/boom", "headers": [], "query_string": b""})
    response = await document_error_handler(request, RuntimeError("boom"))

    assert response.status_code == 500
    assert json.loads(response.body) == {"error": "internal", "message": "Internal server error"}
