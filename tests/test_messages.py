# -*- coding: utf-8 -*-
"""
协议消息测试
"""

import json

import pytest
from pydantic import ValidationError

from game.card import Card
from game.exceptions import MalformedMessageError, UnexpectedMessageError
from game.messages import (
    CLIENT_TO_SERVER,
    SERVER_TO_CLIENT,
    CardDataMsg,
    CardModel,
    ConnectionRejectedMsg,
    GameFinishedMsg,
    GameStartMsg,
    InterceptCardDataMsg,
    JobSubmittedMsg,
    LobbyJoinAttemptMsg,
    MessageType,
    PlayerIdMsg,
    ReceivedCardsMsg,
    ScoreSubmissionMsg,
    TimerFinishedMsg,
    decode_server_message,
    encode_message,
    validate_msg_type,
)


def frame(**fields) -> str:
    return json.dumps(fields)


class TestMessageType:
    """消息类型枚举测试"""

    def test_wire_values(self):
        assert {t.value for t in MessageType} == {
            "lobby_join_attempt",
            "connection_rejected",
            "game_start",
            "job_submitted",
            "player_id",
            "received_cards",
            "card_data",
            "intercept_card_data",
            "timer_finished",
            "score_submission",
            "game_finished",
        }

    def test_directions_partition_all_types(self):
        assert CLIENT_TO_SERVER | SERVER_TO_CLIENT == frozenset(MessageType)
        assert not CLIENT_TO_SERVER & SERVER_TO_CLIENT

    def test_str_enum_compares_with_wire_value(self):
        assert MessageType.GAME_START == "game_start"

    def test_message_type_property(self):
        assert GameStartMsg(number_of_jobs=1).type is MessageType.GAME_START
        assert JobSubmittedMsg(job_input="x").type is MessageType.JOB_SUBMITTED


class TestCardModel:
    def test_numeric_id_coerced_to_string(self):
        card = CardModel.model_validate({"card_id": 7, "job_text": "Pilot"})
        assert card.card_id == "7"

    def test_bool_id_rejected(self):
        with pytest.raises(ValidationError):
            CardModel.model_validate({"card_id": True, "job_text": "Pilot"})

    def test_empty_id_rejected(self):
        with pytest.raises(ValidationError):
            CardModel(card_id="", job_text="Pilot")

    def test_to_card_and_back(self):
        model = CardModel(card_id="3", job_text="Baker")
        card = model.to_card()
        assert card == Card("3", "Baker")
        assert CardModel.from_card(card) == model


class TestDecodeServerMessage:
    """服务端消息解析"""

    def test_connection_rejected(self):
        msg = decode_server_message(frame(message_type="connection_rejected"))
        assert isinstance(msg, ConnectionRejectedMsg)

    def test_game_start(self):
        msg = decode_server_message(frame(message_type="game_start", number_of_jobs=3))
        assert isinstance(msg, GameStartMsg)
        assert msg.number_of_jobs == 3

    def test_player_id(self):
        msg = decode_server_message(frame(message_type="player_id", player_id="p1"))
        assert isinstance(msg, PlayerIdMsg)
        assert msg.player_id == "p1"

    def test_received_cards(self):
        raw = frame(
            message_type="received_cards",
            drawn_cards=[
                {"card_id": 1, "job_text": "Chef"},
                {"card_id": "2", "job_text": "Diver"},
            ],
            job_card={"card_id": 9, "job_text": "Astronaut"},
        )
        msg = decode_server_message(raw)
        assert isinstance(msg, ReceivedCardsMsg)
        assert [c.card_id for c in msg.drawn_cards] == ["1", "2"]
        assert msg.job_card.job_text == "Astronaut"

    def test_timer_and_game_finished(self):
        assert isinstance(
            decode_server_message(frame(message_type="timer_finished")), TimerFinishedMsg
        )
        assert isinstance(
            decode_server_message(frame(message_type="game_finished")), GameFinishedMsg
        )

    def test_bytes_frame(self):
        raw = frame(message_type="player_id", player_id="p1").encode("utf-8")
        assert decode_server_message(raw).player_id == "p1"

    def test_extra_fields_ignored(self):
        msg = decode_server_message(
            frame(message_type="game_start", number_of_jobs=2, round=1)
        )
        assert msg.number_of_jobs == 2

    @pytest.mark.parametrize(
        "raw",
        [
            "not json",
            "",
            "[1, 2]",
            "42",
            b"\xff\xfe",
            frame(player_id="p1"),
            frame(message_type="shout"),
            frame(message_type=5),
            frame(message_type=None),
            frame(message_type="game_start"),
            frame(message_type="game_start", number_of_jobs=-1),
            frame(message_type="game_start", number_of_jobs="many"),
            frame(message_type="player_id"),
            frame(message_type="received_cards", drawn_cards=[{"card_id": "1"}],
                  job_card={"card_id": "9", "job_text": "x"}),
        ],
    )
    def test_malformed(self, raw):
        with pytest.raises(MalformedMessageError):
            decode_server_message(raw)

    @pytest.mark.parametrize("tag", sorted(t.value for t in CLIENT_TO_SERVER))
    def test_client_only_tag_is_unexpected(self, tag):
        with pytest.raises(UnexpectedMessageError) as exc_info:
            decode_server_message(frame(message_type=tag))
        assert exc_info.value.message_type == tag

    def test_malformed_keeps_raw_preview(self):
        with pytest.raises(MalformedMessageError) as exc_info:
            decode_server_message("x" * 500)
        assert len(exc_info.value.details["raw"]) == 200


class TestEncodeMessage:
    """客户端消息序列化"""

    def test_lobby_join_attempt(self):
        raw = encode_message(LobbyJoinAttemptMsg(name="Alice", lobby_code="ABCD"))
        assert json.loads(raw) == {
            "message_type": "lobby_join_attempt",
            "name": "Alice",
            "lobby_code": "ABCD",
        }

    def test_job_submitted(self):
        raw = encode_message(JobSubmittedMsg(job_input="Dog walker"))
        assert json.loads(raw) == {"message_type": "job_submitted", "job_input": "Dog walker"}

    def test_card_data(self):
        card = CardModel(card_id="2", job_text="Diver")
        assert json.loads(encode_message(CardDataMsg(card=card))) == {
            "message_type": "card_data",
            "card": {"card_id": "2", "job_text": "Diver"},
        }
        assert json.loads(encode_message(InterceptCardDataMsg(card=card)))[
            "message_type"
        ] == "intercept_card_data"

    def test_score_submission(self):
        raw = encode_message(ScoreSubmissionMsg(score_in_cents=1250))
        assert json.loads(raw) == {"message_type": "score_submission", "score_in_cents": 1250}

    def test_negative_score_rejected(self):
        with pytest.raises(ValidationError):
            ScoreSubmissionMsg(score_in_cents=-1)

    def test_server_message_roundtrip(self):
        msg = PlayerIdMsg(player_id="p7")
        assert decode_server_message(encode_message(msg)) == msg

    def test_messages_are_frozen(self):
        msg = JobSubmittedMsg(job_input="x")
        with pytest.raises(ValidationError):
            msg.job_input = "y"


class TestHelpers:
    def test_validate_msg_type(self):
        assert validate_msg_type("game_start") is True
        assert validate_msg_type("card_data") is True
        assert validate_msg_type("nope") is False
        assert validate_msg_type(3) is False
        assert validate_msg_type(None) is False
