import threading

import pytest

from agents.prompts import FALLBACK_REPLY
from db.vector_store import VectorDocument
from models.schema import CreateSessionRequest
from utils.errors import InputValidationError, ModelInvocationError, SessionNotFound


def new_session(service, **overrides):
    values = dict(session_name="Dinner", chef_personality="Gordon Ramsay", diet_type="Vegan",
                  allergies="peanuts", user_id="u1")
    values.update(overrides)
    return service.create_session(CreateSessionRequest(**values))


def test_blank_diet_and_allergies_get_defaults(chef_service):
    session = new_session(chef_service, diet_type="  ", allergies="", user_id=None)

    stored = chef_service.get_session(session.id)
    assert stored.diet_type == "Omnivore"
    assert stored.allergies == "No restrictions"
    assert stored.user_id is None


@pytest.mark.parametrize(
    "overrides",
    (
        {"session_name": ""},
        {"session_name": None},
        {"chef_personality": "  "},
        {"chef_personality": "Pirate Captain"},
    ),
)
def test_invalid_session_requests_are_rejected(chef_service, overrides):
    with pytest.raises(InputValidationError):
        new_session(chef_service, **overrides)
    assert chef_service.list_sessions() == []


def test_persona_is_stored_canonically(chef_service):
    session = new_session(chef_service, chef_personality="chef gordon ramsay")

    assert session.chef_personality == "Gordon Ramsay"


def test_turn_persists_user_then_ai(chef_service, chat_model):
    session = new_session(chef_service)
    chat_model.reply = "It's RAW! Here's your stir fry."

    chef_service.handle_turn(session.id, "suggest a stir fry")
    chef_service.handle_turn(session.id, "and a dessert?")

    messages = chef_service.get_messages(session.id)
    assert [(m.sender, m.content) for m in messages] == [
        ("USER", "suggest a stir fry"),
        ("AI", "It's RAW! Here's your stir fry."),
        ("USER", "and a dessert?"),
        ("AI", "It's RAW! Here's your stir fry."),
    ]


def test_in_flight_message_is_not_duplicated_in_context(chef_service, chat_model):
    session = new_session(chef_service)

    chef_service.handle_turn(session.id, "first")
    chef_service.handle_turn(session.id, "second")

    context = chat_model.invocations[-1]["messages"]
    assert [m["content"] for m in context[1:]] == ["first", "Here is your recipe!", "second"]


def test_vegan_peanut_scenario_survives_model_timeout(chef_service, chat_model, vector_store):
    vector_store.documents.append(VectorDocument(
        text="TITLE: Stir Fry\nDIET: Vegan\nINGREDIENTS:\n- peanut oil\n- tofu",
        metadata={"type": "web-recipe", "url": "https://example.com/stir-fry"},
    ))
    session = new_session(chef_service, diet_type="Vegan", allergies="peanuts")
    chat_model.error = ModelInvocationError("Request timed out.")

    chef_service.handle_turn(session.id, "suggest a stir fry")

    directive = chat_model.invocations[0]["messages"][0]["content"]
    assert "User diet: Vegan" in directive
    assert "Allergies: peanuts" in directive
    assert "search_recipes" in chat_model.invocations[0]["tools"]

    messages = chef_service.get_messages(session.id)
    assert [m.sender for m in messages] == ["USER", "AI"]
    assert messages[-1].content == FALLBACK_REPLY


def test_email_tool_only_offered_for_current_message(chef_service, chat_model):
    session = new_session(chef_service)

    chef_service.handle_turn(session.id, "please email the recipe to anna@example.com")
    chef_service.handle_turn(session.id, "now send me a dessert idea")

    assert "send_email" in chat_model.invocations[0]["tools"]
    assert "send_email" not in chat_model.invocations[1]["tools"]


def test_memory_is_refreshed_and_reused(chef_service, chat_model, vector_store):
    first = new_session(chef_service, session_name="Monday")
    chef_service.handle_turn(first.id, "I love lentil soup")

    chunks = vector_store.find(type="conversation-memory", session_id=str(first.id))
    assert len(chunks) == 1
    assert chunks[0].text == "USER: I love lentil soup\nAI: Here is your recipe!"

    second = new_session(chef_service, session_name="Tuesday")
    chef_service.handle_turn(second.id, "lentil soup again?")

    directive = chat_model.invocations[-1]["messages"][0]["content"]
    assert "I love lentil soup" in directive


def test_memory_is_not_shared_between_users(chef_service, chat_model):
    mine = new_session(chef_service, user_id="u1")
    chef_service.handle_turn(mine.id, "secret lentil soup recipe")

    theirs = new_session(chef_service, user_id="u2")
    chef_service.handle_turn(theirs.id, "lentil soup recipe")

    directive = chat_model.invocations[-1]["messages"][0]["content"]
    assert "secret" not in directive
    assert "Past conversations: None" in directive


def test_vector_store_outage_does_not_fail_the_turn(chef_service, chat_model, vector_store):
    session = new_session(chef_service)
    vector_store.fail = True

    chef_service.handle_turn(session.id, "suggest a stir fry")

    messages = chef_service.get_messages(session.id)
    assert [m.sender for m in messages] == ["USER", "AI"]
    assert messages[-1].content == chat_model.reply


def test_unknown_session(chef_service, chat_model):
    with pytest.raises(SessionNotFound):
        chef_service.handle_turn(404, "hello")
    with pytest.raises(SessionNotFound):
        chef_service.get_messages(404)
    assert chat_model.invocations == []


def test_blank_message_is_rejected(chef_service):
    session = new_session(chef_service)

    with pytest.raises(InputValidationError):
        chef_service.handle_turn(session.id, "   ")
    assert chef_service.get_messages(session.id) == []


def test_delete_session_checks_owner_and_purges_memory(chef_service, vector_store):
    session = new_session(chef_service, user_id="u1")
    chef_service.handle_turn(session.id, "I love lentil soup")

    assert chef_service.delete_session(session.id, user_id="u2") is False
    assert chef_service.get_session(session.id) is not None

    assert chef_service.delete_session(session.id, user_id="u1") is True
    assert vector_store.find(session_id=str(session.id)) == []
    with pytest.raises(SessionNotFound):
        chef_service.get_session(session.id)


def test_list_sessions_by_user(chef_service):
    new_session(chef_service, session_name="a", user_id="u1")
    new_session(chef_service, session_name="b", user_id="u2")

    assert [s.name for s in chef_service.list_sessions("u1")] == ["a"]
    assert len(chef_service.list_sessions()) == 2


@pytest.mark.parametrize(
    "error",
    (
        TimeoutError("model adapter timed out"),
        RuntimeError("unexpected response shape"),
    ),
)
def test_untyped_model_errors_still_end_in_fallback_reply(chef_service, chat_model, error):
    session = new_session(chef_service)
    chat_model.error = error

    chef_service.handle_turn(session.id, "suggest a stir fry")

    messages = chef_service.get_messages(session.id)
    assert [m.sender for m in messages] == ["USER", "AI"]
    assert messages[-1].content == FALLBACK_REPLY


def test_untyped_vector_store_errors_do_not_fail_the_turn(chef_service, chat_model, vector_store, monkeypatch):
    session = new_session(chef_service)

    def index_exploded(*args, **kwargs):
        raise RuntimeError("index exploded")

    monkeypatch.setattr(vector_store, "similarity_search", index_exploded)
    monkeypatch.setattr(vector_store, "add", index_exploded)

    chef_service.handle_turn(session.id, "suggest a stir fry")

    messages = chef_service.get_messages(session.id)
    assert [(m.sender, m.content) for m in messages] == [("USER", "suggest a stir fry"), ("AI", chat_model.reply)]
    assert "Past conversations: None" in chat_model.invocations[0]["messages"][0]["content"]


def test_turn_waiting_on_a_deleted_session_writes_nothing(chef_service, chat_model):
    session = new_session(chef_service)
    errors = []

    def run_turn():
        try:
            chef_service.handle_turn(session.id, "suggest a stir fry")
        except SessionNotFound as e:
            errors.append(e)

    with chef_service._session_lock(session.id):
        worker = threading.Thread(target=run_turn)
        worker.start()
        chef_service.conversations.delete_session(session.id)
    worker.join(timeout=5)

    assert len(errors) == 1
    assert chef_service.conversations.get_messages(session.id) == []
    assert chat_model.invocations == []


def test_session_locks_are_released_after_use(chef_service):
    session = new_session(chef_service)

    chef_service.handle_turn(session.id, "suggest a stir fry")
    chef_service.get_messages(session.id)

    assert session.id not in chef_service._locks
