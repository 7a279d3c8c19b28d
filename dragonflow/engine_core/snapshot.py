"""
Snapshot - Flat dict form of GameState.

This is what the transport ships between peers. Enum members are
written as their values; there are no cyclic references.
"""

from __future__ import annotations
from typing import Any

from .state import (
    ActionBudget,
    ActionCategory,
    Board,
    Card,
    DragonType,
    Flow,
    FlowPosition,
    GamePhase,
    GameState,
    HarmonizationEvent,
    PlayerSide,
)


def card_to_dict(card: Card) -> dict[str, Any]:
    return {
        "card_id": card.card_id,
        "dragon_type": card.dragon_type.value,
        "owner": card.owner.value if card.owner else None,
    }


def card_from_dict(data: dict[str, Any]) -> Card:
    return Card(
        card_id=data["card_id"],
        dragon_type=DragonType(data["dragon_type"]),
        owner=PlayerSide(data["owner"]) if data.get("owner") else None,
    )


def event_to_dict(event: HarmonizationEvent) -> dict[str, Any]:
    return {
        "card_id": event.card_id,
        "dragon_type": event.dragon_type.value,
        "owner": event.owner.value,
        "column_index": event.column_index,
        "reharmonize": event.reharmonize,
    }


def event_from_dict(data: dict[str, Any]) -> HarmonizationEvent:
    return HarmonizationEvent(
        card_id=data["card_id"],
        dragon_type=DragonType(data["dragon_type"]),
        owner=PlayerSide(data["owner"]),
        column_index=data["column_index"],
        reharmonize=data.get("reharmonize", False),
    )


def _position_to_dict(pos: FlowPosition) -> dict[str, Any]:
    return {
        "column_index": pos.column_index,
        "card": card_to_dict(pos.card) if pos.card else None,
        "is_blocked": pos.is_blocked,
        "blocked_by": pos.blocked_by,
    }


def _position_from_dict(data: dict[str, Any]) -> FlowPosition:
    return FlowPosition(
        column_index=data["column_index"],
        card=card_from_dict(data["card"]) if data.get("card") else None,
        is_blocked=data.get("is_blocked", False),
        blocked_by=data.get("blocked_by"),
    )


def board_to_dict(board: Board) -> dict[str, Any]:
    return {
        "flows": {
            side.value: [_position_to_dict(pos) for pos in board.flow(side)]
            for side in PlayerSide
        },
        "hands": {
            side.value: [card_to_dict(c) for c in board.hand(side)] for side in PlayerSide
        },
        "deck": [card_to_dict(c) for c in board.deck],
        "discard_pile": [card_to_dict(c) for c in board.discard_pile],
        "ore": {side.value: board.ore[side] for side in PlayerSide},
    }


def board_from_dict(data: dict[str, Any]) -> Board:
    return Board(
        flows={
            side: Flow(positions=[_position_from_dict(p) for p in data["flows"][side.value]])
            for side in PlayerSide
        },
        hands={
            side: [card_from_dict(c) for c in data["hands"][side.value]] for side in PlayerSide
        },
        deck=[card_from_dict(c) for c in data["deck"]],
        discard_pile=[card_from_dict(c) for c in data["discard_pile"]],
        ore={side: int(data["ore"][side.value]) for side in PlayerSide},
    )


def state_to_dict(state: GameState) -> dict[str, Any]:
    """Serialize the whole state."""
    return {
        "game_id": state.game_id,
        "phase": state.phase.value,
        "current_turn": state.current_turn.value,
        "choosing_player": state.choosing_player.value if state.choosing_player else None,
        "turn_number": state.turn_number,
        "winner": state.winner.value if state.winner else None,
        "board": board_to_dict(state.board),
        "budget": {
            "used": {c.value: n for c, n in state.budget.used.items()},
            "actions_remaining": state.budget.actions_remaining,
        },
        "pending_harmonization": (
            event_to_dict(state.pending_harmonization)
            if state.pending_harmonization else None
        ),
        "harmonization_queue": [event_to_dict(e) for e in state.harmonization_queue],
        "harmonized_this_turn": list(state.harmonized_this_turn),
    }


def state_from_dict(data: dict[str, Any]) -> GameState:
    """
    Rebuild a GameState from its dict form.

    Raises KeyError/ValueError on malformed input. Rule invariants are
    not checked here; see validation.validate_state.
    """
    budget_data = data["budget"]
    return GameState(
        game_id=data["game_id"],
        phase=GamePhase(data["phase"]),
        current_turn=PlayerSide(data["current_turn"]),
        choosing_player=(
            PlayerSide(data["choosing_player"]) if data.get("choosing_player") else None
        ),
        turn_number=data.get("turn_number", 0),
        winner=PlayerSide(data["winner"]) if data.get("winner") else None,
        board=board_from_dict(data["board"]),
        budget=ActionBudget(
            used={c: int(budget_data["used"].get(c.value, 0)) for c in ActionCategory},
            actions_remaining=int(budget_data["actions_remaining"]),
        ),
        pending_harmonization=(
            event_from_dict(data["pending_harmonization"])
            if data.get("pending_harmonization") else None
        ),
        harmonization_queue=[event_from_dict(e) for e in data.get("harmonization_queue", [])],
        harmonized_this_turn=list(data.get("harmonized_this_turn", [])),
    )
