from medvault_pkg.metrics.services import compute_health_summary


def test_averages_only_over_present_fields():
    summary = compute_health_summary([
        {"heart_rate": 70},
        {"heart_rate": 80, "systolic": 120, "diastolic": 80},
    ])

    assert summary["average_heart_rate"] == 75
    assert summary["average_blood_pressure"] == {"systolic": 120, "diastolic": 80}
    assert summary["average_blood_sugar"] is None
    assert summary["average_temperature"] is None


def test_blood_pressure_needs_both_values():
    summary = compute_health_summary([
        {"systolic": 150},
        {"diastolic": 95},
        {"systolic": 110, "diastolic": 70},
    ])
    assert summary["average_blood_pressure"] == {"systolic": 110, "diastolic": 70}


def test_rounding():
    summary = compute_health_summary([
        {"heart_rate": 71, "blood_sugar": 90, "temperature": 36.5},
        {"heart_rate": 72, "blood_sugar": 95, "temperature": 37.1},
    ])
    assert summary["average_heart_rate"] == 72
    assert summary["average_blood_sugar"] == 93
    assert summary["average_temperature"] == 36.8


def test_summary_endpoint(client, register):
    patient = register('patient')
    for reading in ({"date": "2024-02-01", "heart_rate": 70},
                    {"date": "2024-02-02", "heart_rate": 80, "systolic": 120, "diastolic": 80}):
        assert client.post('/api/health-metrics', headers=patient["headers"], json=reading).status_code == 201

    summary = client.get('/api/health-metrics/summary', headers=patient["headers"]).get_json()
    assert summary["average_heart_rate"] == 75
    assert summary["reading_count"] == 2


def test_metric_needs_a_reading(client, register):
    patient = register('patient')
    response = client.post('/api/health-metrics', headers=patient["headers"], json={"date": "2024-02-01"})
    assert response.status_code == 400
