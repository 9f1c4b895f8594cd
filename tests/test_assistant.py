from medvault_pkg.assistant.responses import APPOINTMENT_REPLY, DISCLAIMER, FALLBACK_REPLY, get_response


def test_appointment_questions():
    assert get_response("How do I book an appointment?") == APPOINTMENT_REPLY


def test_medication_questions_carry_the_disclaimer():
    reply = get_response("Which medicine helps a headache?")
    assert reply.startswith("For mild to moderate pain")
    assert reply.endswith(DISCLAIMER)

    general = get_response("Show my medication list")
    assert general.startswith("Your medications can be viewed")


def test_rules_are_checked_in_order():
    # 'schedule' wins over 'exercise' because appointment questions come first.
    assert get_response("Can I schedule exercise?") == APPOINTMENT_REPLY
    assert get_response("Where is my latest test result?").startswith("Your medical reports")


def test_unknown_question_gets_fallback():
    assert get_response("xyz") == FALLBACK_REPLY


def test_message_endpoint(client, register):
    patient = register('patient')
    response = client.post('/api/assistant/messages', headers=patient["headers"],
                           json={"content": "book an appointment"})
    assert response.status_code == 200
    assert response.get_json()["reply"]["content"] == APPOINTMENT_REPLY
    assert response.get_json()["reply"]["sender"] == 'assistant'

    empty = client.post('/api/assistant/messages', headers=patient["headers"], json={"content": "  "})
    assert empty.status_code == 400
