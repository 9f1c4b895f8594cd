from medvault_pkg.reports.analysis import analyze_report
from medvault_pkg.repository import report_repository


def _upload(client, patient, **overrides):
    body = {"title": "Blood work", "date": "2024-03-01", "doctor_name": "Dr. Grey", "category": "Lab",
            "file_url": "https://files.example.com/cbc_results.pdf", "file_name": "cbc_results.pdf"}
    body.update(overrides)
    return client.post('/api/reports', headers=patient["headers"], json=body)


def test_upload_list_and_delete(client, register):
    patient = register('patient')
    response = _upload(client, patient)
    assert response.status_code == 201
    assert response.get_json()["synced"] is True
    report_id = response.get_json()["report"]["id"]

    listing = client.get('/api/reports', headers=patient["headers"]).get_json()
    assert [r["id"] for r in listing["reports"]] == [report_id]

    assert client.delete(f'/api/reports/{report_id}', headers=patient["headers"]).status_code == 200
    assert client.get('/api/reports', headers=patient["headers"]).get_json()["reports"] == []


def test_upload_requires_a_file(client, register):
    patient = register('patient')
    assert _upload(client, patient, file_url=None).status_code == 400


def test_reports_are_private_to_their_owner(client, register):
    owner, other = register('patient'), register('patient')
    report_id = _upload(client, owner).get_json()["report"]["id"]

    assert client.get('/api/reports', headers=other["headers"]).get_json()["reports"] == []
    assert client.delete(f'/api/reports/{report_id}', headers=other["headers"]).status_code == 404


def test_upload_survives_an_unreachable_record_store(client, register, monkeypatch, remote_down):
    patient = register('patient')
    monkeypatch.setattr(report_repository, '_insert_remote', remote_down)

    response = _upload(client, patient)
    assert response.status_code == 201
    assert response.get_json()["synced"] is False

    monkeypatch.setattr(report_repository, '_select_remote', remote_down)
    listing = client.get('/api/reports', headers=patient["headers"]).get_json()
    assert [r["id"] for r in listing["reports"]] == [response.get_json()["report"]["id"]]


def test_analysis_is_picked_by_file_name():
    assert "Complete Blood Count" in analyze_report("cbc_results.pdf")["diagnosis"]
    assert "chest X-ray" in analyze_report("Chest_XRAY.png")["diagnosis"]
    assert "brain MRI" in analyze_report("brain-mri.dcm")["diagnosis"]
    assert analyze_report("notes.txt")["diagnosis"].startswith("Preliminary analysis completed")


def test_analysis_results_are_independent_copies():
    first = analyze_report("cbc.pdf")
    first["findings"].append("tampered")
    assert "tampered" not in analyze_report("cbc.pdf")["findings"]


def test_analyze_endpoint(client, register):
    patient = register('patient')
    response = client.post('/api/reports/analyze', headers=patient["headers"], json={"file_name": "cbc_results.pdf"})
    assert response.status_code == 200
    assert len(response.get_json()["analysis"]["recommendations"]) == 3
