"""
Action Generator - Generates all legal actions from a game state.

The action generator is used by:
1. UIs to enable/disable action buttons and highlight targets
2. Tests, to cross-check the reducer

Design: Generates Action objects, not just action types.
This ensures all generated actions are fully specified.
"""

from __future__ import annotations
from dataclasses import dataclass

from .action import Action
from .harmonization import is_harmonized
from .rules import FLOW_LENGTH, ORE_COSTS, defeats
from .state import ActionCategory, DragonType, GamePhase, GameState, PlayerSide


@dataclass
class ActionGenerator:
    """Generates legal actions for one side."""

    def generate(self, state: GameState, side: PlayerSide) -> list[Action]:
        """
        Generate all legal actions for `side`.

        Returns a list of fully-specified Action objects.
        """
        if state.phase == GamePhase.GAME_OVER:
            return []

        if state.phase == GamePhase.CHOOSE_STARTER:
            if side != state.choosing_player:
                return []
            return [Action.choose_starter(side, True), Action.choose_starter(side, False)]

        # If waiting for a harmonization, only its owner may act
        if state.awaiting_harmonization:
            if side != state.pending_harmonization.owner:
                return []
            return self._generate_harmonization_actions(state, side)

        if side != state.current_turn:
            return []

        actions = []
        actions.extend(self._generate_summon_actions(state, side))
        actions.extend(self._generate_attack_actions(state, side))
        if state.budget.can_use(ActionCategory.DRAW) and (
            state.board.deck or state.board.discard_pile
        ):
            actions.append(Action.draw(side))
        if state.budget.can_use(ActionCategory.GAIN_ORE):
            actions.append(Action.gain_ore(side))
        actions.extend(self._generate_ore_actions(state, side))

        # End turn is always available
        actions.append(Action.end_turn(side))
        return actions

    def _generate_summon_actions(self, state: GameState, side: PlayerSide) -> list[Action]:
        if not state.budget.can_use(ActionCategory.SUMMON):
            return []
        flow = state.board.flow(side)
        open_columns = [pos.column_index for pos in flow if pos.is_open]
        return [
            Action.summon(side, card.card_id, column)
            for card in state.board.hand(side)
            for column in open_columns
        ]

    def _generate_attack_actions(self, state: GameState, side: PlayerSide) -> list[Action]:
        if not state.budget.can_use(ActionCategory.ATTACK):
            return []
        return [
            Action.attack(side, column)
            for column in range(FLOW_LENGTH)
            if self._can_defeat(state, side, column, column)
        ]

    def _generate_ore_actions(self, state: GameState, side: PlayerSide) -> list[Action]:
        if not state.budget.can_use(ActionCategory.SPEND_ORE):
            return []
        ore = state.board.ore[side]
        flow = state.board.flow(side)
        occupied = [pos.column_index for pos in flow if pos.card]
        open_columns = [pos.column_index for pos in flow if pos.is_open]
        actions = []

        if ore >= ORE_COSTS["move"]:
            actions.extend(
                Action.move(side, src, dst) for src in occupied for dst in open_columns
            )
        if ore >= ORE_COSTS["return"]:
            actions.extend(Action.return_to_hand(side, col) for col in occupied)
        if ore >= ORE_COSTS["conflict"]:
            actions.extend(
                Action.conflict(side, src, dst)
                for src in occupied
                for dst in range(FLOW_LENGTH)
                if self._can_defeat(state, side, src, dst)
            )
        if ore >= ORE_COSTS["reharmonize"]:
            actions.extend(
                Action.reharmonize(side, col) for col in occupied if is_harmonized(flow, col)
            )
        if ore >= ORE_COSTS["search"]:
            for dragon_type in DragonType:
                actions.append(Action.search(side, dragon_type))
                actions.extend(Action.search(side, dragon_type, col) for col in open_columns)
        return actions

    def _generate_harmonization_actions(self, state: GameState, side: PlayerSide) -> list[Action]:
        """Accept variants for the pending event, plus skip."""
        event = state.pending_harmonization
        board = state.board
        enemy_flow = board.flow(side.opponent)
        actions = []

        if event.dragon_type == DragonType.FIRE:
            actions.extend(
                Action.accept_harmonization(side, target_column=pos.column_index)
                for pos in enemy_flow if pos.card
            )
        elif event.dragon_type == DragonType.EARTH:
            actions.extend(
                Action.accept_harmonization(side, target_column=pos.column_index)
                for pos in enemy_flow if pos.is_open
            )
        elif event.dragon_type == DragonType.WATER:
            positions = [(s, pos) for s in PlayerSide for pos in board.flow(s)]
            for src_side, src in positions:
                if src.card is None:
                    continue
                for dst_side, dst in positions:
                    if (src_side, src.column_index) == (dst_side, dst.column_index):
                        continue
                    if dst.card is None and dst.is_blocked:
                        continue
                    actions.append(
                        Action.accept_harmonization(
                            side,
                            source_side=src_side,
                            source_column=src.column_index,
                            target_side=dst_side,
                            target_column=dst.column_index,
                        )
                    )
        else:
            actions.append(Action.accept_harmonization(side))

        actions.append(Action.skip_harmonization(side))
        return actions

    def _can_defeat(self, state: GameState, side: PlayerSide, src: int, dst: int) -> bool:
        attacker = state.board.flow(side).card_at(src)
        defender = state.board.flow(side.opponent).card_at(dst)
        return bool(attacker and defender and defeats(attacker.dragon_type, defender.dragon_type))


def legal_actions(state: GameState, side: PlayerSide) -> list[Action]:
    """
    Convenience function to get legal actions.

    Creates an ActionGenerator and generates actions.
    """
    return ActionGenerator().generate(state, side)


def is_legal(state: GameState, action: Action) -> bool:
    """Check if a specific action is legal."""
    side = action.payload.player
    if side is None:
        return False
    return any(a == action for a in legal_actions(state, side))
