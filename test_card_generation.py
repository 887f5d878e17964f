from studyhub.memory_cards import services
from studyhub.memory_cards.services import extract_cards_from_text, parse_card_pairs, template_alternatives


def test_extract_question_and_definition_cards():
    cards = extract_cards_from_text(
        "Cells are small. What does DNA store? It stores genetic information. "
        "Mitochondria is the powerhouse of the cell."
    )
    assert cards == [
        {"question": "What does DNA store?", "answer": "It stores genetic information."},
        {"question": "What is Mitochondria?", "answer": "the powerhouse of the cell"},
    ]


def test_extract_ignores_trailing_question_without_answer():
    assert extract_cards_from_text("What makes the sky blue?") == []


def test_extract_answer_found_after_punctuation():
    cards = extract_cards_from_text("Ready? ...Yes.")
    assert cards == [{"question": "Ready?", "answer": "Yes."}]


def test_extract_definition_with_exclamation():
    cards = extract_cards_from_text("Water is essential for life!")
    assert cards == [{"question": "What is Water?", "answer": "essential for life"}]


def test_parse_card_pairs_handles_fenced_json():
    response = '```json\n[{"question": "Q1", "answer": "A1"}, {"question": "", "answer": "x"}, "junk"]\n```'
    assert parse_card_pairs(response) == [{"question": "Q1", "answer": "A1"}]
    assert parse_card_pairs("not json at all") == []
    assert parse_card_pairs(None) == []


def test_template_alternatives():
    alternatives = template_alternatives("Photosynthesis", "How Plants Make Food", 4)
    assert [a["question"] for a in alternatives] == [
        "Explain: Photosynthesis",
        "Define in your own words: Photosynthesis",
        'What is meant by "Photosynthesis"?',
        'How would you describe "Photosynthesis" to someone new to this topic?',
    ]
    assert alternatives[0]["answer"] == "How Plants Make Food"
    assert alternatives[1]["answer"] == "Simply put, how plants make food"


# ============== API ==============

def test_alternatives_endpoint_without_ai(client, student):
    response = client.post(
        "/memory-cards/alternatives",
        json={"question": "What is ATP?", "answer": "Energy currency", "count": 2},
        headers=student,
    )
    assert response.status_code == 200
    data = response.json()["data"]
    assert data["originalQuestion"] == "What is ATP?"
    assert data["originalAnswer"] == "Energy currency"
    assert data["alternatives"] == [
        {"question": "Explain: What is ATP?", "answer": "Energy currency"},
        {"question": "Define in your own words: What is ATP?", "answer": "Simply put, energy currency"},
    ]


def test_alternatives_count_bounds(client, student):
    payload = {"question": "Q", "answer": "A"}
    response = client.post("/memory-cards/alternatives", json={**payload, "count": 9}, headers=student)
    assert response.status_code == 200
    assert len(response.json()["data"]["alternatives"]) == 4
    assert client.post("/memory-cards/alternatives", json={**payload, "count": 0}, headers=student).status_code == 400

    response = client.post("/memory-cards/alternatives", json=payload, headers=student)
    assert len(response.json()["data"]["alternatives"]) == 3


def test_alternatives_use_ai_when_configured(client, student, monkeypatch):
    async def fake_query(prompt, timeout=60.0):
        return '[{"question": "Define ATP", "answer": "Energy currency"}]'

    monkeypatch.setattr(services.settings, "GEMINI_API_KEY", "test-key")
    monkeypatch.setattr(services, "query_to_llm", fake_query)

    response = client.post(
        "/memory-cards/alternatives",
        json={"question": "What is ATP?", "answer": "Energy currency"},
        headers=student,
    )
    assert response.json()["data"]["alternatives"] == [{"question": "Define ATP", "answer": "Energy currency"}]


def test_alternatives_fall_back_when_ai_fails(client, student, monkeypatch):
    async def failing_query(prompt, timeout=60.0):
        return None

    monkeypatch.setattr(services.settings, "GEMINI_API_KEY", "test-key")
    monkeypatch.setattr(services, "query_to_llm", failing_query)

    response = client.post(
        "/memory-cards/alternatives",
        json={"question": "Q", "answer": "A", "count": 1},
        headers=student,
    )
    assert response.json()["data"]["alternatives"] == [{"question": "Explain: Q", "answer": "A"}]


def test_generate_from_completed_chapters(client, student, course_id, enroll):
    enroll(student)
    client.post(f"/courses/{course_id}/chapters/c1/complete", headers=student)
    client.post(f"/courses/{course_id}/chapters/c2/complete", headers=student)

    response = client.post("/memory-cards/generate", json={"courseId": course_id}, headers=student)
    assert response.status_code == 201

    data = response.json()["data"]
    assert data["cardsGenerated"] == 2
    assert data["totalPotentialCards"] == 2
    assert data["deck"]["title"] == "Biology 101 Flashcards"
    assert data["deck"]["courseId"] == course_id
    assert data["deck"]["cardsCount"] == 2

    deck = client.get(f"/memory-cards/decks/{data['deck']['deckId']}", headers=student).json()["data"]
    questions = sorted(card["question"] for card in deck["cards"])
    assert questions == ["What does DNA store?", "What is Mitochondria?"]
    assert all(card["sectionId"] == "s1" and card["chapterId"] == "c1" for card in deck["cards"])
    assert not any(card["aiGenerated"] for card in deck["cards"])


def test_generate_respects_card_limit(client, student, course_id, enroll, monkeypatch):
    from studyhub.memory_cards import routes

    monkeypatch.setattr(routes.settings, "MAX_GENERATED_CARDS", 1)
    enroll(student)
    client.post(f"/courses/{course_id}/chapters/c1/complete", headers=student)
    client.post(f"/courses/{course_id}/chapters/c3/complete", headers=student)

    response = client.post(
        "/memory-cards/generate",
        json={"courseId": course_id, "deckTitle": "Quick review"},
        headers=student,
    )
    data = response.json()["data"]
    assert data["cardsGenerated"] == 1
    assert data["totalPotentialCards"] == 3
    assert data["deck"]["title"] == "Quick review"


def test_generate_adds_ai_cards_first(client, student, course_id, enroll, monkeypatch):
    async def fake_query(prompt, timeout=60.0):
        return '[{"question": "Where is DNA kept?", "answer": "In the nucleus"}]'

    monkeypatch.setattr(services.settings, "GEMINI_API_KEY", "test-key")
    monkeypatch.setattr(services, "query_to_llm", fake_query)
    enroll(student)
    client.post(f"/courses/{course_id}/chapters/c1/complete", headers=student)

    response = client.post("/memory-cards/generate", json={"courseId": course_id}, headers=student)
    data = response.json()["data"]
    assert data["cardsGenerated"] == 3

    deck = client.get(f"/memory-cards/decks/{data['deck']['deckId']}", headers=student).json()["data"]
    ai_cards = [card for card in deck["cards"] if card["aiGenerated"]]
    assert [card["question"] for card in ai_cards] == ["Where is DNA kept?"]


def test_generate_without_completed_content_fails(client, student, course_id, enroll):
    enroll(student)
    client.post(f"/courses/{course_id}/chapters/c2/complete", headers=student)

    response = client.post("/memory-cards/generate", json={"courseId": course_id}, headers=student)
    assert response.status_code == 422
    assert response.json()["error"] == "GENERATION_FAILED"


def test_generate_requires_enrollment(client, student, course_id):
    response = client.post("/memory-cards/generate", json={"courseId": course_id}, headers=student)
    assert response.status_code == 403
    assert response.json()["error"] == "NOT_ENROLLED"

    response = client.post("/memory-cards/generate", json={"courseId": "missing"}, headers=student)
    assert response.status_code == 404
