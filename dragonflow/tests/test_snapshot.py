"""
Tests for snapshots and state validation.

Tests:
- Snapshot layout and JSON safety
- Mid-cascade snapshots
- Invariant checks used for optional peer revalidation
"""

import json

import pytest

from ..engine_core.action import Action
from ..engine_core.snapshot import state_from_dict, state_to_dict
from ..engine_core.state import Card, DragonType
from ..engine_core.validation import StateValidationError, validate_state
from .conftest import P1, P2


class TestSnapshot:
    """Tests for the flat snapshot."""

    def test_layout(self, new_game):
        """Top-level keys and enum values."""
        data = state_to_dict(new_game)

        assert data["phase"] == "choose-starter"
        assert data["choosing_player"] in ("player1", "player2")
        assert set(data["board"]["flows"]) == {"player1", "player2"}
        assert len(data["board"]["flows"]["player1"]) == 5
        assert data["budget"]["actions_remaining"] == 3
        assert data["budget"]["used"]["spend_ore"] == 0
        assert data["pending_harmonization"] is None

    def test_json_round_trip_mid_cascade(self, make_state, reducer):
        """A snapshot taken mid-cascade restores pending, queue and marks."""
        state = make_state(p1_flow=[DragonType.FIRE, None, DragonType.METAL], p1_hand=[DragonType.EARTH])
        earth_id = state.board.hand(P1)[0].card_id
        state = reducer.apply(state, Action.summon(P1, earth_id, 1)).new_state
        state.harmonized_this_turn.append("wood-0-deadbeef")

        restored = state_from_dict(json.loads(json.dumps(state_to_dict(state))))

        assert restored == state
        assert restored.pending_harmonization.card_id == earth_id
        assert restored.harmonization_queue[0].dragon_type == DragonType.METAL
        assert restored.board.flow(P1).card_at(0).owner == P1

    def test_restored_state_plays_on(self, make_state, reducer):
        """The peer can keep applying actions to an adopted snapshot."""
        state = make_state(p1_flow=[DragonType.EARTH], p1_hand=[DragonType.METAL])
        metal_id = state.board.hand(P1)[0].card_id
        state = reducer.apply(state, Action.summon(P1, metal_id, 1)).new_state

        restored = state_from_dict(state_to_dict(state))
        result = reducer.apply(restored, Action.accept_harmonization(P1))

        assert result.success
        assert result.new_state.board.ore[P1] == 2

    def test_malformed_snapshot(self, new_game):
        """Unknown enum values raise ValueError."""
        data = state_to_dict(new_game)
        data["phase"] = "halftime"

        with pytest.raises(ValueError):
            state_from_dict(data)


class TestValidation:
    """Tests for validate_state."""

    def test_valid_mid_game(self, make_state, reducer):
        """States produced by the reducer validate."""
        state = make_state(p1_hand=[DragonType.FIRE])
        card_id = state.board.hand(P1)[0].card_id
        state = reducer.apply(state, Action.summon(P1, card_id, 0)).new_state

        assert validate_state(state).valid

    def test_duplicate_card(self, make_state):
        """A card in two zones is caught."""
        state = make_state(p1_hand=[DragonType.FIRE])
        state.board.hands[P2].append(state.board.hand(P1)[0])

        result = validate_state(state)

        assert not result.valid
        assert any("duplicated" in e for e in result.errors)

    def test_missing_card(self, make_state):
        """Cards cannot vanish."""
        state = make_state()
        state.board.deck.pop()

        assert not validate_state(state).valid

    def test_wrong_owner(self, make_state):
        """A flow card must belong to its flow's side."""
        state = make_state(p1_flow=[DragonType.FIRE])
        state.board.flow(P1).card_at(0).owner = P2

        result = validate_state(state)

        assert any("wrong owner" in e for e in result.errors)

    def test_owner_off_board(self, make_state):
        """Hand cards carry no owner."""
        state = make_state(p1_hand=[DragonType.FIRE])
        state.board.hand(P1)[0].owner = P1

        assert not validate_state(state).valid

    def test_blocked_and_occupied(self, make_state):
        """A blocked space cannot hold a card."""
        state = make_state(p1_flow=[DragonType.FIRE])
        state.board.flow(P1)[0].is_blocked = True
        state.board.flow(P1)[0].blocked_by = "earth-0-00000000"

        assert not validate_state(state).valid

    def test_negative_ore(self, make_state):
        state = make_state(ore={P1: -1})

        assert not validate_state(state).valid

    def test_raise_on_error(self, make_state):
        """raise_on_error turns errors into StateValidationError."""
        state = make_state()
        state.board.deck.append(Card("fire-9-ffffffff", DragonType.FIRE))

        with pytest.raises(StateValidationError) as exc_info:
            validate_state(state, raise_on_error=True)
        assert exc_info.value.errors
