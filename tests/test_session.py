"""Tests for the setup wizard and the tutor session flows."""

import base64

import pytest

from conftest import FAILED, ScriptedGateway, make_session, quiz_json
from kellz_math.models import ActionId, Difficulty, Mode, Rigor, Sender
from kellz_math.session import (
    CORRECT_TEXT,
    LAST_QUESTION_TEXT,
    MISSING_PROBLEM_TEXT,
    PRACTICE_AGAIN_TEXT,
    QUIZ_DONE_TEXT,
    SessionBusyError,
    SessionStore,
    SetupIncompleteError,
    TutorSession,
)
from kellz_math.tutor import ANALYSIS_FALLBACK, NEXT_STEP_FALLBACK, greeting_fallback
from kellz_math.wizard import SetupError, SetupWizard

PNG = base64.b64encode(b"\x89PNG\r\n\x1a\nwork").decode()


def _texts(turns):
    return [t.text for t in turns]


def _actions(turn):
    return [a.value for a in turn.actions]


# --- Setup wizard ---


class TestSetupWizard:
    def test_three_steps(self):
        wizard = SetupWizard()
        assert wizard.options() == ["Elementary", "Middle School", "High School", "College"]
        assert wizard.choose("Middle School") is None
        assert wizard.options() == ["Novice", "Intermediate", "Pro"]
        assert wizard.choose("Pro") is None
        assert wizard.options() == ["solver", "practice"]
        config = wizard.choose("practice")
        assert config.difficulty == Difficulty.middle_school
        assert config.rigor == Rigor.pro
        assert config.mode == Mode.practice
        assert wizard.complete
        assert wizard.options() == []

    def test_value_must_match_step(self):
        wizard = SetupWizard()
        with pytest.raises(SetupError, match="Unknown difficulty"):
            wizard.choose("Pro")
        assert wizard.step == 0

    def test_no_choices_after_complete(self):
        wizard = SetupWizard()
        for value in ("College", "Novice", "solver"):
            wizard.choose(value)
        with pytest.raises(SetupError):
            wizard.choose("practice")

    def test_config_is_frozen(self):
        wizard = SetupWizard()
        for value in ("College", "Novice", "solver"):
            config = wizard.choose(value)
        with pytest.raises(Exception):
            config.mode = Mode.practice


# --- Greeting ---


class TestGreeting:
    def test_greeting_after_mode(self):
        gw = ScriptedGateway(["Welcome to Kellz Math!"])
        session = TutorSession(gw, question_delay=0)
        assert session.choose("College").turns == []
        session.choose("Novice")
        update = session.choose("solver")
        assert _texts(update.turns) == ["Welcome to Kellz Math!"]
        assert update.turns[0].sender == Sender.assistant
        assert len(gw.calls) == 1
        assert "College" in gw.calls[0]["contents"]

    def test_greeting_fallback(self):
        session = make_session(ScriptedGateway([FAILED]), mode="practice")
        assert _texts(session.transcript.turns) == [greeting_fallback(Mode.practice)]
        assert "What topic" in session.transcript.turns[0].text

    def test_chat_before_setup_raises(self, gateway):
        session = TutorSession(gateway)
        with pytest.raises(SetupIncompleteError):
            session.send_message("2 + 2")
        assert gateway.calls == []


# --- Problem solver ---


class TestProblemSolver:
    def test_first_message_is_the_problem(self):
        gw = ScriptedGateway(["Hi!", "First, subtract 3."])
        session = make_session(gw)
        update = session.send_message("  2x + 3 = 7 ")
        assert _texts(update.turns) == ["2x + 3 = 7", "First, subtract 3."]
        assert session.current_problem == "2x + 3 = 7"
        assert _actions(update.turns[1]) == [
            ActionId.next_step,
            ActionId.create_learning_path,
        ]
        # Whole transcript goes out with the next-step instruction
        call = gw.calls[1]
        assert len(call["contents"]) == 2
        assert "Novice" in call["system_instruction"]

    def test_later_messages_keep_the_problem(self):
        session = make_session(ScriptedGateway())
        session.send_message("2x + 3 = 7")
        session.send_message("I don't get it")
        assert session.current_problem == "2x + 3 = 7"

    def test_next_step_action(self):
        gw = ScriptedGateway(["Hi!", "Subtract 3.", "Now divide by 2."])
        session = make_session(gw)
        session.send_message("2x + 3 = 7")
        update = session.click_action("next_step", "Next Step")
        assert _texts(update.turns) == ["Next Step", "Now divide by 2."]
        assert update.turns[0].sender == Sender.user
        assert _actions(update.turns[1]) == [
            ActionId.next_step,
            ActionId.create_learning_path,
        ]
        assert len(gw.calls[2]["contents"]) == 4

    def test_learning_path(self):
        gw = ScriptedGateway(["Hi!", "Subtract 3.", "1. **Variables**"])
        session = make_session(gw)
        session.send_message("2x + 3 = 7")
        update = session.click_action("create_learning_path")
        assert _texts(update.turns) == ["Create Learning Path", "1. **Variables**"]
        assert _actions(update.turns[1]) == [ActionId.next_step]
        assert '"2x + 3 = 7"' in gw.calls[2]["contents"]

    def test_learning_path_without_problem(self):
        gw = ScriptedGateway()
        session = make_session(gw)
        calls_before = len(gw.calls)
        update = session.click_action("create_learning_path", "Create Learning Path")
        assert update.turns[-1].text == MISSING_PROBLEM_TEXT
        assert len(gw.calls) == calls_before

    def test_next_step_fallback(self):
        session = make_session(ScriptedGateway(["Hi!", FAILED]))
        update = session.send_message("2x + 3 = 7")
        assert update.turns[-1].text == NEXT_STEP_FALLBACK

    def test_image_message(self):
        gw = ScriptedGateway()
        session = make_session(gw)
        update = session.submit_scratchpad("data:image/png;base64," + PNG)
        user_turn = update.turns[0]
        assert user_turn.text == "Here's my work from the scratchpad."
        assert user_turn.image == PNG
        assert session.current_problem == "Here's my work from the scratchpad."

    def test_upload_message(self):
        session = make_session(ScriptedGateway())
        update = session.submit_upload("homework.png", PNG)
        assert update.turns[0].text == "Image uploaded: homework.png"

    def test_empty_message_rejected(self):
        session = make_session(ScriptedGateway())
        with pytest.raises(ValueError):
            session.send_message("   ")

    def test_bad_image_rejected(self):
        session = make_session(ScriptedGateway())
        with pytest.raises(ValueError):
            session.send_message("work", image="***not base64***")

    def test_image_without_text_rejected(self):
        gw = ScriptedGateway()
        session = make_session(gw)
        calls_before = len(gw.calls)
        with pytest.raises(ValueError, match="text"):
            session.send_message("", image=PNG)
        assert session.current_problem is None
        assert len(gw.calls) == calls_before

    def test_image_problem_can_still_get_learning_path(self):
        gw = ScriptedGateway(["Hi!", "Let's look at your picture.", "1. **Slopes**"])
        session = make_session(gw)
        session.submit_upload("problem.png", PNG)
        assert session.current_problem == "Image uploaded: problem.png"
        update = session.click_action("create_learning_path")
        assert update.turns[-1].text == "1. **Slopes**"

    def test_unknown_action_rejected(self):
        session = make_session(ScriptedGateway())
        with pytest.raises(ValueError):
            session.click_action("dance")


# --- Practice quiz ---


def _practice_session(*replies):
    gw = ScriptedGateway(["Hi! Which topic?", *replies])
    return make_session(gw, mode="practice"), gw


class TestPracticeQuiz:
    def test_topic_starts_quiz(self):
        session, gw = _practice_session(quiz_json(("What is 1 + 1?", "2"), ("3 - 1?", "2")))
        update = session.send_message("addition")
        assert _texts(update.turns) == [
            "addition",
            'Excellent choice! Generating a 5-question quiz on "addition" for you now...',
            "Question 1 of 2:\n\nWhat is 1 + 1?",
        ]
        assert session.quiz.status == "in_progress"
        assert gw.calls[1]["response_schema"] is not None

    def test_blank_topic_with_image_rejected(self):
        session, gw = _practice_session()
        with pytest.raises(ValueError):
            session.send_message("  ", image=PNG)
        assert session.quiz.awaiting_topic
        assert len(gw.calls) == 1

    def test_topic_turn_keeps_image(self):
        session, _ = _practice_session(quiz_json(("What is 1 + 1?", "2")))
        update = session.send_message("this worksheet", image=PNG)
        assert update.turns[0].image == PNG
        assert session.quiz.state.topic == "this worksheet"

    def test_two_correct_answers_complete_quiz(self):
        session, _ = _practice_session(quiz_json(("What is 1 + 1?", "2"), ("Half of 8?", "4")))
        session.send_message("addition")

        first = session.send_message(" 2 ")
        assert first.sound_cue == "correct"
        assert first.turns[0].is_correct_answer is True
        assert _texts(first.turns[1:]) == [CORRECT_TEXT, "Question 2 of 2:\n\nHalf of 8?"]

        second = session.send_message("4")
        assert second.sound_cue == "correct"
        assert _texts(second.turns[1:]) == [QUIZ_DONE_TEXT]
        assert _actions(second.turns[-1]) == [ActionId.practice_again]
        assert session.quiz.is_complete

    def test_wrong_answer_gets_analysis_then_next_question(self):
        session, gw = _practice_session(
            quiz_json(("What is 5 * 5?", "25"), ("What is 2 * 3?", "6")),
            "Thanks for sharing your work! ...",
        )
        session.send_message("multiplication")
        update = session.send_message("10")
        assert update.sound_cue is None
        assert update.turns[0].is_correct_answer is False
        analysis = update.turns[1]
        assert analysis.text == "Thanks for sharing your work! ..."
        assert analysis.requesting_work is True
        assert update.turns[2].text == "Question 2 of 2:\n\nWhat is 2 * 3?"
        prompt = gw.calls[2]["contents"]
        assert '"What is 5 * 5?"' in prompt
        assert '"10"' in prompt
        assert "College" in prompt

    def test_wrong_answer_with_image(self):
        session, gw = _practice_session(quiz_json(("What is 5 * 5?", "25")), FAILED)
        session.send_message("multiplication")
        update = session.send_message("10", image=PNG)
        analysis = update.turns[1]
        assert analysis.text == ANALYSIS_FALLBACK
        assert analysis.requesting_work is False
        assert update.turns[2].text == LAST_QUESTION_TEXT
        assert _actions(update.turns[2]) == [ActionId.practice_again]
        # Image goes to the model inline
        contents = gw.calls[2]["contents"]
        assert contents[0].parts[1].inline_data.mime_type == "image/png"

    def test_fallback_quiz_on_failure(self):
        session, _ = _practice_session(FAILED)
        update = session.send_message("fractions")
        assert update.turns[-1].text.startswith("Question 1 of 2:\n\nWhat is 2 + 2?")
        assert session.quiz.state.questions[1].question == "What is 5 * 5?"

    def test_practice_again(self):
        session, gw = _practice_session(quiz_json(("What is 1 + 1?", "2")))
        session.send_message("addition")
        session.send_message("2")
        calls_before = len(gw.calls)
        update = session.click_action("practice_again", "Practice another topic")
        assert _texts(update.turns) == ["Practice another topic", PRACTICE_AGAIN_TEXT]
        assert session.quiz.awaiting_topic
        assert len(gw.calls) == calls_before

        gw.replies.append(quiz_json(("What is 10 / 2?", "5")))
        update = session.send_message("division")
        assert update.turns[-1].text == "Question 1 of 1:\n\nWhat is 10 / 2?"

    def test_chat_after_quiz_has_no_actions(self):
        session, _ = _practice_session(quiz_json(("What is 1 + 1?", "2")), "Sure!")
        session.send_message("addition")
        session.send_message("2")
        update = session.send_message("Can you explain more?")
        assert update.turns[-1].text == "Sure!"
        assert update.turns[-1].actions == []
        assert session.current_problem is None


class TestQuestionDelay:
    def _session(self, monkeypatch, delay):
        gw = ScriptedGateway(
            ["Hi!", quiz_json(("What is 5 * 5?", "25"), ("What is 2 * 3?", "6")), "Not quite."]
        )
        session = TutorSession(gw, question_delay=delay)
        for value in ("Elementary", "Novice", "practice"):
            session.choose(value)
        sleeps = []
        monkeypatch.setattr(
            "kellz_math.session.time.sleep",
            lambda seconds: sleeps.append((seconds, session.transcript.turns[-1].text)),
        )
        session.send_message("multiplication")
        return session, sleeps

    def test_delay_before_next_question(self, monkeypatch):
        session, sleeps = self._session(monkeypatch, 1.5)
        update = session.send_message("10")
        # Slept after the analysis, before the next question was added
        assert sleeps == [(1.5, "Not quite.")]
        assert update.turns[-1].text == "Question 2 of 2:\n\nWhat is 2 * 3?"

    def test_no_delay_after_last_question(self, monkeypatch):
        session, sleeps = self._session(monkeypatch, 1.5)
        session.send_message("10")
        sleeps.clear()
        update = session.send_message("5")
        assert sleeps == []
        assert update.turns[-1].text == LAST_QUESTION_TEXT

    def test_no_delay_after_correct_answer(self, monkeypatch):
        session, sleeps = self._session(monkeypatch, 1.5)
        session.send_message("25")
        assert sleeps == []


# --- Transcript and busy flag ---


class TestTranscript:
    def _replay(self):
        gw = ScriptedGateway(
            ["Hi!", quiz_json(("What is 1 + 1?", "2"), ("3 + 3?", "6")), "Nice try."]
        )
        session = make_session(gw, mode="practice")
        session.send_message("addition")
        session.send_message("2")
        session.send_message("7")
        session.click_action("practice_again")
        return session.transcript.turns

    def test_replay_is_identical(self):
        first = self._replay()
        second = self._replay()
        assert first == second

    def test_ids_unique_and_ordered(self):
        turns = self._replay()
        ids = [t.id for t in turns]
        assert len(set(ids)) == len(ids)
        assert ids == [str(i) for i in range(1, len(turns) + 1)]


class TestBusy:
    def test_second_action_while_busy(self):
        session = make_session(ScriptedGateway())
        session._busy.acquire()
        try:
            assert session.busy
            with pytest.raises(SessionBusyError):
                session.send_message("2 + 2")
        finally:
            session._busy.release()
        assert not session.busy

    def test_flag_released_after_error(self):
        session = TutorSession(ScriptedGateway())
        with pytest.raises(SetupError):
            session.choose("Very Hard")
        assert not session.busy


class TestSessionStore:
    def test_create_get_delete(self, gateway):
        store = SessionStore()
        session = store.create(gateway, question_delay=0)
        assert store.get(session.id) is session
        assert len(store) == 1
        store.delete(session.id)
        with pytest.raises(KeyError):
            store.get(session.id)

    def test_idle_sessions_expire(self, gateway):
        now = [0.0]
        store = SessionStore(idle_ttl=60, clock=lambda: now[0])
        idle = store.create(gateway)
        active = store.create(gateway)
        now[0] = 50
        store.get(active.id)
        now[0] = 100
        assert store.get(active.id) is active
        with pytest.raises(KeyError):
            store.get(idle.id)
        assert len(store) == 1

    def test_busy_session_is_not_expired(self, gateway):
        now = [0.0]
        store = SessionStore(idle_ttl=60, clock=lambda: now[0])
        session = store.create(gateway)
        session._busy.acquire()
        try:
            now[0] = 120
            assert store.get(session.id) is session
        finally:
            session._busy.release()

    def test_cap_evicts_least_recently_used(self, gateway):
        now = [0.0]
        store = SessionStore(max_sessions=2, clock=lambda: now[0])
        first = store.create(gateway)
        now[0] = 1
        second = store.create(gateway)
        now[0] = 2
        store.get(first.id)
        now[0] = 3
        third = store.create(gateway)
        assert len(store) == 2
        assert store.get(first.id) is first
        assert store.get(third.id) is third
        with pytest.raises(KeyError):
            store.get(second.id)
