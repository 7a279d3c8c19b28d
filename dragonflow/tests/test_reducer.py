"""
Tests for the reducer (state transitions).

Tests:
- Phase and turn validation
- Action budget accounting
- Summon, attack, draw, gain ore
- Ore abilities (move, return, conflict, reharmonize, search)
- End of turn
- Error handling
"""

import pytest

from ..engine_core.action import Action, ErrorCode
from ..engine_core.reducer import apply_action
from ..engine_core.state import ActionCategory, DragonType, GamePhase
from ..engine_core.validation import validate_state
from .conftest import P1, P2


FIRE = DragonType.FIRE
WATER = DragonType.WATER
EARTH = DragonType.EARTH
WOOD = DragonType.WOOD
METAL = DragonType.METAL


class TestPhaseValidation:
    """Tests for phase and turn ownership checks."""

    def test_turn_action_rejected_before_starter_chosen(self, new_game, reducer):
        """Nothing but choose_starter is allowed in the choose-starter phase."""
        result = reducer.apply(new_game, Action.draw(new_game.choosing_player))

        assert not result.success
        assert result.error_code == ErrorCode.WRONG_PHASE

    def test_only_chooser_picks_turn_order(self, new_game, reducer):
        """The non-choosing side cannot pick turn order."""
        other = new_game.choosing_player.opponent
        result = reducer.apply(new_game, Action.choose_starter(other, True))

        assert not result.success
        assert result.error_code == ErrorCode.NOT_YOUR_TURN

    def test_choose_to_go_second(self, new_game, reducer):
        """Declining to go first hands the first turn to the opponent."""
        chooser = new_game.choosing_player
        result = reducer.apply(new_game, Action.choose_starter(chooser, False))

        assert result.success
        state = result.new_state
        assert state.phase == GamePhase.PLAYING
        assert state.current_turn == chooser.opponent
        assert state.choosing_player is None
        assert state.turn_number == 1
        assert state.budget.actions_remaining == 3

    def test_choose_starter_twice_rejected(self, playing_state, reducer):
        """Turn order can only be chosen once."""
        result = reducer.apply(playing_state, Action.choose_starter(playing_state.current_turn, True))

        assert not result.success
        assert result.error_code == ErrorCode.WRONG_PHASE

    def test_not_your_turn(self, make_state, reducer):
        """Player 2 cannot act on player 1's turn."""
        state = make_state()
        result = reducer.apply(state, Action.gain_ore(P2))

        assert not result.success
        assert result.error_code == ErrorCode.NOT_YOUR_TURN

    def test_input_state_untouched(self, make_state, reducer):
        """Applying an action never mutates the input state."""
        state = make_state(p1_hand=[FIRE])
        card_id = state.board.hand(P1)[0].card_id
        deck_size = len(state.board.deck)

        result = reducer.apply(state, Action.summon(P1, card_id, 0))
        reducer.apply(state, Action.draw(P1))

        assert result.success
        assert state.board.flow(P1).card_at(0) is None
        assert len(state.board.hand(P1)) == 1
        assert len(state.board.deck) == deck_size
        assert state.budget.actions_remaining == 3

    def test_apply_action_convenience(self, make_state):
        """apply_action builds a reducer on the fly."""
        result = apply_action(make_state(), Action.gain_ore(P1))

        assert result.success
        assert result.new_state.board.ore[P1] == 1


class TestActionBudget:
    """Tests for the three-action, two-per-category budget."""

    def test_category_cap(self, make_state, reducer):
        """A category can be used at most twice per turn."""
        state = make_state()
        for _ in range(2):
            result = reducer.apply(state, Action.gain_ore(P1))
            assert result.success
            state = result.new_state

        result = reducer.apply(state, Action.gain_ore(P1))

        assert not result.success
        assert result.error_code == ErrorCode.BUDGET_EXHAUSTED
        assert state.board.ore[P1] == 2

    def test_three_actions_per_turn(self, make_state, reducer):
        """The fourth budgeted action is rejected."""
        state = make_state()
        for action in (Action.gain_ore(P1), Action.gain_ore(P1), Action.draw(P1)):
            state = reducer.apply(state, action).new_state

        assert state.budget.actions_remaining == 0
        assert state.budget.exhausted

        result = reducer.apply(state, Action.draw(P1))
        assert not result.success
        assert result.error_code == ErrorCode.BUDGET_EXHAUSTED

    def test_end_turn_always_allowed(self, make_state, reducer):
        """Ending the turn does not need budget."""
        state = make_state()
        for action in (Action.gain_ore(P1), Action.gain_ore(P1), Action.draw(P1)):
            state = reducer.apply(state, action).new_state

        result = reducer.apply(state, Action.end_turn(P1))

        assert result.success
        assert result.new_state.current_turn == P2

    def test_budget_never_increases_within_turn(self, make_state, reducer):
        """actions_remaining only goes down until the turn ends."""
        state = make_state(p1_hand=[WOOD], p1_flow=[None, WATER])
        wood_id = state.board.hand(P1)[0].card_id
        seen = [state.budget.actions_remaining]

        for action in (
            Action.summon(P1, wood_id, 2),
            Action.accept_harmonization(P1),
            Action.gain_ore(P1),
            Action.draw(P1),
        ):
            state = reducer.apply(state, action).new_state
            seen.append(state.budget.actions_remaining)

        assert seen == sorted(seen, reverse=True)
        assert seen[-1] == 0

    def test_rejected_action_spends_nothing(self, make_state, reducer):
        """A rejected summon does not touch the budget."""
        state = make_state(p1_flow=[FIRE], p1_hand=[WATER])
        card_id = state.board.hand(P1)[0].card_id

        result = reducer.apply(state, Action.summon(P1, card_id, 0))

        assert not result.success
        assert result.error_code == ErrorCode.SPACE_OCCUPIED_OR_BLOCKED
        assert state.budget.used[ActionCategory.SUMMON] == 0


class TestSummon:
    """Tests for summon."""

    def test_summon_places_card(self, make_state, reducer):
        """Summoning moves a hand card onto the flow."""
        state = make_state(p1_hand=[FIRE])
        card_id = state.board.hand(P1)[0].card_id

        result = reducer.apply(state, Action.summon(P1, card_id, 3))

        assert result.success
        new = result.new_state
        card = new.board.flow(P1).card_at(3)
        assert card.card_id == card_id
        assert card.owner == P1
        assert new.board.hand(P1) == []
        assert new.budget.used[ActionCategory.SUMMON] == 1
        assert new.pending_harmonization is None

    def test_summon_card_not_in_hand(self, make_state, reducer):
        """Only cards in the acting player's hand can be summoned."""
        state = make_state(p2_hand=[FIRE])
        card_id = state.board.hand(P2)[0].card_id

        result = reducer.apply(state, Action.summon(P1, card_id, 0))

        assert not result.success
        assert result.error_code == ErrorCode.ILLEGAL_TARGET

    def test_summon_column_out_of_range(self, make_state, reducer):
        """Columns are 0-4."""
        state = make_state(p1_hand=[FIRE])
        card_id = state.board.hand(P1)[0].card_id

        result = reducer.apply(state, Action.summon(P1, card_id, 5))

        assert not result.success
        assert result.error_code == ErrorCode.ILLEGAL_TARGET

    def test_summon_onto_blocked_space(self, make_state, reducer):
        """A blocked space rejects a summon."""
        state = make_state(p1_hand=[FIRE], p2_flow=[FIRE, EARTH])
        earth_id = state.board.flow(P2).card_at(1).card_id
        state.board.flow(P1)[2].is_blocked = True
        state.board.flow(P1)[2].blocked_by = earth_id
        card_id = state.board.hand(P1)[0].card_id

        result = reducer.apply(state, Action.summon(P1, card_id, 2))

        assert not result.success
        assert result.error_code == ErrorCode.SPACE_OCCUPIED_OR_BLOCKED

    def test_summon_triggers_harmonization(self, make_state, reducer):
        """Water at column 1 harmonizes a Wood summoned to column 2."""
        state = make_state(p1_flow=[None, WATER], p1_hand=[WOOD])
        wood_id = state.board.hand(P1)[0].card_id

        result = reducer.apply(state, Action.summon(P1, wood_id, 2))

        assert result.success
        pending = result.new_state.pending_harmonization
        assert pending is not None
        assert pending.card_id == wood_id
        assert pending.dragon_type == WOOD
        assert pending.owner == P1
        assert pending.column_index == 2

    def test_summon_completing_flow_wins(self, make_state, reducer):
        """Holding all five types on the flow ends the game at once."""
        state = make_state(p1_flow=[FIRE, METAL, WOOD, EARTH], p1_hand=[WATER])
        water_id = state.board.hand(P1)[0].card_id

        result = reducer.apply(state, Action.summon(P1, water_id, 4))

        assert result.success
        new = result.new_state
        assert new.phase == GamePhase.GAME_OVER
        assert new.winner == P1
        assert new.pending_harmonization is None

        after = reducer.apply(new, Action.gain_ore(P1))
        assert not after.success
        assert after.error_code == ErrorCode.WRONG_PHASE


class TestAttack:
    """Tests for same-column combat."""

    def test_attack_destroys_defender(self, make_state, reducer):
        """Fire defeats Metal in the same column."""
        state = make_state(p1_flow=[FIRE], p2_flow=[METAL])
        metal_id = state.board.flow(P2).card_at(0).card_id

        result = reducer.apply(state, Action.attack(P1, 0))

        assert result.success
        new = result.new_state
        assert new.board.flow(P2).card_at(0) is None
        assert new.board.flow(P1).card_at(0) is not None
        assert new.board.discard_pile[-1].card_id == metal_id
        assert new.board.discard_pile[-1].owner is None
        assert new.budget.used[ActionCategory.ATTACK] == 1

    def test_attack_against_stronger_type(self, make_state, reducer):
        """Water defeats Fire, not the other way round."""
        state = make_state(p1_flow=[FIRE], p2_flow=[WATER])

        result = reducer.apply(state, Action.attack(P1, 0))

        assert not result.success
        assert result.error_code == ErrorCode.ILLEGAL_TARGET

    def test_attack_empty_column(self, make_state, reducer):
        """There must be a defender in the same column."""
        state = make_state(p1_flow=[FIRE], p2_flow=[None, METAL])

        result = reducer.apply(state, Action.attack(P1, 0))

        assert not result.success
        assert result.error_code == ErrorCode.ILLEGAL_TARGET

    @pytest.mark.parametrize(
        "attacker,defender",
        [(FIRE, METAL), (METAL, WOOD), (WOOD, EARTH), (EARTH, WATER), (WATER, FIRE)],
    )
    def test_combat_wheel(self, make_state, reducer, attacker, defender):
        """Each type defeats exactly the next one on the wheel."""
        state = make_state(p1_flow=[attacker], p2_flow=[defender])

        assert reducer.apply(state, Action.attack(P1, 0)).success

        reverse = make_state(p1_flow=[defender], p2_flow=[attacker])
        assert not reducer.apply(reverse, Action.attack(P1, 0)).success


class TestDrawAndOre:
    """Tests for draw and gain ore."""

    def test_draw_takes_top_card(self, make_state, reducer):
        """Drawing takes the top of the deck."""
        state = make_state(deck_top=[EARTH])
        top_id = state.board.deck[0].card_id

        result = reducer.apply(state, Action.draw(P1))

        assert result.success
        assert result.new_state.board.hand(P1)[-1].card_id == top_id
        assert len(result.new_state.board.deck) == len(state.board.deck) - 1

    def test_draw_reshuffles_discard(self, make_state, reducer):
        """An empty deck is refilled from the discard pile."""
        state = make_state(discard=[FIRE, WATER])
        state.board.hands[P2].extend(state.board.deck)
        state.board.deck = []

        result = reducer.apply(state, Action.draw(P1))

        assert result.success
        new = result.new_state
        assert len(new.board.hand(P1)) == 1
        assert len(new.board.deck) == 1
        assert new.board.discard_pile == []

    def test_draw_with_nothing_left(self, make_state, reducer):
        """Drawing from an empty deck and discard is rejected and free."""
        state = make_state()
        state.board.hands[P2].extend(state.board.deck)
        state.board.deck = []

        result = reducer.apply(state, Action.draw(P1))

        assert not result.success
        assert result.error_code == ErrorCode.DECK_EMPTY

    def test_gain_ore(self, make_state, reducer):
        """Gain ore adds one ore."""
        result = reducer.apply(make_state(ore={P1: 3}), Action.gain_ore(P1))

        assert result.success
        assert result.new_state.board.ore[P1] == 4
        assert result.new_state.budget.used[ActionCategory.GAIN_ORE] == 1


class TestOreAbilities:
    """Tests for spend ore."""

    def test_insufficient_ore(self, make_state, reducer):
        """Abilities cost ore up front."""
        state = make_state(p1_flow=[FIRE], ore={P1: 0})

        result = reducer.apply(state, Action.return_to_hand(P1, 0))

        assert not result.success
        assert result.error_code == ErrorCode.INSUFFICIENT_RESOURCE

    def test_move_triggers_harmonization(self, make_state, reducer):
        """Moving Wood next to Fire harmonizes the Fire."""
        state = make_state(p1_flow=[WOOD, None, None, FIRE], ore={P1: 1})
        fire_id = state.board.flow(P1).card_at(3).card_id

        result = reducer.apply(state, Action.move(P1, 0, 2))

        assert result.success
        new = result.new_state
        assert new.board.flow(P1).card_at(0) is None
        assert new.board.flow(P1).card_at(2).dragon_type == WOOD
        assert new.board.ore[P1] == 0
        assert new.budget.used[ActionCategory.SPEND_ORE] == 1
        assert new.pending_harmonization.card_id == fire_id

    def test_move_to_occupied_space(self, make_state, reducer):
        """Move needs an open destination."""
        state = make_state(p1_flow=[WOOD, FIRE], ore={P1: 1})

        result = reducer.apply(state, Action.move(P1, 0, 1))

        assert not result.success
        assert result.error_code == ErrorCode.SPACE_OCCUPIED_OR_BLOCKED

    def test_return_to_hand(self, make_state, reducer):
        """Return puts an own dragon back in hand without an owner."""
        state = make_state(p1_flow=[FIRE], ore={P1: 1})
        fire_id = state.board.flow(P1).card_at(0).card_id

        result = reducer.apply(state, Action.return_to_hand(P1, 0))

        assert result.success
        new = result.new_state
        assert new.board.flow(P1).card_at(0) is None
        card = new.board.find_in_hand(P1, fire_id)
        assert card is not None
        assert card.owner is None
        assert new.board.ore[P1] == 0

    def test_conflict_any_column(self, make_state, reducer):
        """Conflict attacks a different column."""
        state = make_state(p1_flow=[None, WATER], p2_flow=[None, None, None, FIRE], ore={P1: 2})

        result = reducer.apply(state, Action.conflict(P1, 1, 3))

        assert result.success
        assert result.new_state.board.flow(P2).card_at(3) is None
        assert result.new_state.board.ore[P1] == 0
        assert result.new_state.budget.used[ActionCategory.ATTACK] == 0

    def test_reharmonize(self, make_state, reducer):
        """Reharmonize lets a dragon resolve a second time."""
        state = make_state(p1_flow=[EARTH, METAL], ore={P1: 3})
        metal_id = state.board.flow(P1).card_at(1).card_id
        state.harmonized_this_turn.append(metal_id)

        result = reducer.apply(state, Action.reharmonize(P1, 1))

        assert result.success
        new = result.new_state
        assert new.board.ore[P1] == 0
        assert new.pending_harmonization.card_id == metal_id
        assert new.pending_harmonization.reharmonize

        accepted = reducer.apply(new, Action.accept_harmonization(P1))
        assert accepted.success
        assert accepted.new_state.board.ore[P1] == 2

    def test_reharmonize_needs_harmonized_card(self, make_state, reducer):
        """Only a currently harmonized dragon can reharmonize."""
        state = make_state(p1_flow=[EARTH, METAL], ore={P1: 3})

        result = reducer.apply(state, Action.reharmonize(P1, 0))

        assert not result.success
        assert result.error_code == ErrorCode.ILLEGAL_TARGET

    def test_search_to_hand(self, make_state, reducer):
        """Search discards revealed cards until the wanted type."""
        state = make_state(deck_top=[WATER, WOOD, FIRE], ore={P1: 4})
        fire_id = state.board.deck[2].card_id

        result = reducer.apply(state, Action.search(P1, FIRE))

        assert result.success
        new = result.new_state
        assert new.board.find_in_hand(P1, fire_id) is not None
        assert [c.dragon_type for c in new.board.discard_pile] == [WATER, WOOD]
        assert new.board.ore[P1] == 0

    def test_search_to_flow(self, make_state, reducer):
        """Search can place the card straight onto an open column."""
        state = make_state(p1_flow=[None, WOOD], deck_top=[FIRE], ore={P1: 4})

        result = reducer.apply(state, Action.search(P1, FIRE, column=2))

        assert result.success
        new = result.new_state
        assert new.board.flow(P1).card_at(2).dragon_type == FIRE
        assert new.board.flow(P1).card_at(2).owner == P1
        assert new.pending_harmonization.dragon_type == FIRE

    def test_search_miss_is_void(self, make_state, reducer):
        """A miss reshuffles discard into the deck and spends nothing."""
        state = make_state(discard=[FIRE] * 6, ore={P1: 4})
        deck_size = len(state.board.deck)

        result = reducer.apply(state, Action.search(P1, FIRE))

        assert not result.success
        assert result.voided
        assert result.error_code == ErrorCode.INVALID_SEARCH
        new = result.new_state
        assert new.board.ore[P1] == 4
        assert new.budget.actions_remaining == 3
        assert new.board.discard_pile == []
        assert len(new.board.deck) == deck_size + 6
        assert any(c.dragon_type == FIRE for c in new.board.deck)


class TestEndTurn:
    """Tests for end of turn."""

    def test_end_turn_rolls_over(self, make_state, reducer):
        """The other side gets a fresh budget."""
        state = make_state()
        state = reducer.apply(state, Action.gain_ore(P1)).new_state
        state.harmonized_this_turn.append("some-card")

        result = reducer.apply(state, Action.end_turn(P1))

        new = result.new_state
        assert new.current_turn == P2
        assert new.turn_number == 2
        assert new.budget.actions_remaining == 3
        assert all(n == 0 for n in new.budget.used.values())
        assert new.harmonized_this_turn == []

    def test_hand_limit_applies_to_ending_player(self, make_state, reducer):
        """Cards past the fifth are discarded at end of turn."""
        state = make_state(p1_hand=[FIRE] * 6 + [WATER], p2_hand=[EARTH] * 6 + [WOOD])

        result = reducer.apply(state, Action.end_turn(P1))

        new = result.new_state
        assert len(new.board.hand(P1)) == 5
        assert [c.dragon_type for c in new.board.discard_pile] == [FIRE, WATER]
        assert len(new.board.hand(P2)) == 7

    def test_end_turn_blocked_by_pending(self, make_state, reducer):
        """A pending harmonization must be answered first."""
        state = make_state(p1_flow=[None, WATER], p1_hand=[WOOD])
        wood_id = state.board.hand(P1)[0].card_id
        state = reducer.apply(state, Action.summon(P1, wood_id, 2)).new_state

        result = reducer.apply(state, Action.end_turn(P1))

        assert not result.success
        assert result.error_code == ErrorCode.HARMONIZATION_PENDING


class TestCardConservation:
    """The table always holds exactly 30 cards."""

    def test_cards_conserved_across_turns(self, make_state, reducer):
        """Summon, harmonize, draw, combat and rollover neither create nor lose cards."""
        state = make_state(
            p1_flow=[FIRE], p1_hand=[EARTH], p2_flow=[None, WOOD], p2_hand=[METAL]
        )
        earth_id = state.board.hand(P1)[0].card_id
        metal_id = state.board.hand(P2)[0].card_id
        actions = [
            Action.summon(P1, earth_id, 1),
            Action.accept_harmonization(P1, target_column=3),
            Action.draw(P1),
            Action.end_turn(P1),
            Action.attack(P2, 1),
            Action.summon(P2, metal_id, 3),
            Action.draw(P2),
            Action.end_turn(P2),
        ]

        for action in actions:
            result = reducer.apply(state, action)
            assert result.success, result.error
            state = result.new_state

            validation = validate_state(state)
            assert validation.valid, validation.errors
            assert len(state.board.all_cards()) == 30

        assert state.current_turn == P1
        assert state.turn_number == 3
        assert len(state.board.discard_pile) == 1
