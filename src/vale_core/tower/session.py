"""
Tower session orchestrator.

TowerSession drives a whole run: for each floor it either applies the rest
or builds the floor battle (normalized party against scaled enemies),
resolves it round by round with the given policies, and folds the result and
rewards back into the run and the roster team.

The roster keeps its own levels. Only a normalized copy fights; afterwards
the roster picks up each unit's remaining HP (clamped to its own maximum).
Status effects and Djinn states from the battle are not carried over.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Optional, Protocol, Sequence, Union

from vale_core.battle.ai import EnemyPolicy, ScriptedEnemyPolicy
from vale_core.battle.battle_state import BattleConfig, BattleState
from vale_core.battle.queue_battle import (
    execute_round,
    find_unit_ability,
    get_planning_turn_order,
    queue_action,
    queue_djinn,
    release_djinn,
)
from vale_core.battle.rewards import LevelUpEvent, calculate_battle_rewards, distribute_rewards, roll_drops
from vale_core.content.repository import ContentRepository
from vale_core.content.schemas import (
    Ability,
    ChoiceEquipmentReward,
    FixedEquipmentReward,
    RestFloor,
    TowerFloor,
    TowerRewardEntry,
)
from vale_core.data_models import (
    MAX_EQUIPPED_DJINN,
    MAX_PARTY_SIZE,
    AbilityType,
    BattleStatus,
    DjinnState,
    FloorOutcome,
    ProgressionCurve,
    TowerDifficulty,
)
from vale_core.rng import BattleRng, derive_seed
from vale_core.team.djinn import collect_djinn, equip_djinn, get_djinn_granted_abilities
from vale_core.team.team import Team, update_team
from vale_core.tower.config import DEFAULT_TOWER_CONFIG, TowerConfig
from vale_core.tower.normalization import normalize_party_for_floor
from vale_core.tower.tower_service import (
    TowerRecord,
    TowerRestSummary,
    TowerRunState,
    calculate_enemy_scaling,
    clear_pending_rewards,
    complete_rest_floor,
    create_battle_from_encounter,
    create_tower_run,
    get_current_floor,
    get_rewards_for_floor,
    heal_team_at_rest,
    record_battle_result,
    summarize_battle,
    update_tower_record,
)
from vale_core.units.stats import get_effective_max_hp
from vale_core.units.unit import Unit, create_unit, is_unit_ko

logger = logging.getLogger(__name__)

# Below this share of max HP an ally is worth a heal
LOW_HP_RATIO = 0.4


class PlayerPolicy(Protocol):
    """Fills the action queue for a planning-phase battle state."""

    def plan(self, state: BattleState, repository: Optional[ContentRepository] = None) -> BattleState:
        ...


class BasicPlayerPolicy:
    """
    Queues each living unit's best affordable action.

    A unit heals the most wounded ally when one is below 40% HP and it knows
    an affordable healing ability; otherwise it uses its strongest
    affordable damaging ability on the weakest enemy, or a basic attack.

    With use_djinn set, every Set Djinn is released on the first round and
    every summonable Djinn is queued each round.
    """

    def __init__(self, use_djinn: bool = False):
        self.use_djinn = use_djinn

    def _usable(self, state: BattleState, unit: Unit, repository: Optional[ContentRepository]) -> list[Ability]:
        abilities = list(unit.unlocked_abilities)
        if repository is not None:
            known = {a.id for a in abilities}
            for ability_id in unit.unlocked_ability_ids:
                if ability_id not in known:
                    ability = find_unit_ability(state, unit, ability_id, repository)
                    if ability is not None:
                        abilities.append(ability)
                        known.add(ability.id)
            for ability in get_djinn_granted_abilities(unit, state.player_team, repository):
                if ability.id not in known:
                    abilities.append(ability)
        return [a for a in abilities if a.mana_cost <= state.remaining_mana]

    def choose(
        self,
        state: BattleState,
        unit: Unit,
        repository: Optional[ContentRepository] = None,
    ) -> tuple[Optional[str], tuple[str, ...]]:
        """Pick (ability id or None, target ids) for one unit."""
        usable = self._usable(state, unit, repository)
        team = state.player_team

        wounded = [
            u for u in state.living_players()
            if u.current_hp < get_effective_max_hp(u, team) * LOW_HP_RATIO
        ]
        heals = [a for a in usable if a.type == AbilityType.HEALING and not a.revive]
        if wounded and heals:
            heal = max(heals, key=lambda a: a.base_power)
            target = min(wounded, key=lambda u: u.current_hp / get_effective_max_hp(u, team))
            return heal.id, (target.id,)

        enemies = state.living_enemies()
        weakest = min(enemies, key=lambda u: u.current_hp)
        attacks = [a for a in usable if a.type in (AbilityType.PHYSICAL, AbilityType.PSYNERGY)]
        if attacks:
            attack = max(attacks, key=lambda a: (a.base_power, -a.mana_cost))
            targets = tuple(u.id for u in enemies) if attack.targets_all else (weakest.id,)
            return attack.id, targets
        return None, (weakest.id,)

    def plan(self, state: BattleState, repository: Optional[ContentRepository] = None) -> BattleState:
        if self.use_djinn:
            state = self._plan_djinn(state)
        for index in get_planning_turn_order(state):
            unit = state.player_team.units[index]
            if is_unit_ko(unit) or not state.living_enemies():
                continue
            ability_id, targets = self.choose(state, unit, repository)
            result = queue_action(state, unit.id, ability_id, targets, repository=repository)
            if not result.success:
                logger.debug(f"{unit.id} falls back to a basic attack: {result.error}")
                weakest = min(state.living_enemies(), key=lambda u: u.current_hp)
                result = queue_action(state, unit.id, None, (weakest.id,))
            state = result.state
        return state

    def _plan_djinn(self, state: BattleState) -> BattleState:
        team = state.player_team
        if state.round_number == 1:
            for tracker in team.get_djinn_in_state(DjinnState.SET):
                state = release_djinn(state, tracker.djinn_id).state
        for djinn_id in state.player_team.equipped_djinn:
            result = queue_djinn(state, djinn_id)
            if result.success:
                state = result.state
        return state


@dataclass
class FloorResult:
    """What one play_floor call did."""

    floor_number: int
    floor_type: str
    outcome: FloorOutcome
    rounds: int = 0
    level_ups: list[LevelUpEvent] = field(default_factory=list)
    rewards: list[TowerRewardEntry] = field(default_factory=list)
    final_state: Optional[BattleState] = None


class TowerSession:
    """
    Plays a Battle Tower run floor by floor.

    Usage:
        session = TowerSession(repository, team, seed=42, difficulty="hard")
        session.run_to_completion()
        print(session.run.stats)
    """

    def __init__(
        self,
        repository: ContentRepository,
        team: Team,
        seed: int,
        difficulty: Union[TowerDifficulty, str] = TowerDifficulty.NORMAL,
        curve: Union[ProgressionCurve, str] = ProgressionCurve.STEPPED,
        config: TowerConfig = DEFAULT_TOWER_CONFIG,
        floors: Optional[Sequence[TowerFloor]] = None,
        record: Optional[TowerRecord] = None,
        enemy_policy: Optional[EnemyPolicy] = None,
        player_policy: Optional[PlayerPolicy] = None,
        battle_config: Optional[BattleConfig] = None,
    ):
        self.repository = repository
        self.team = team
        self.curve = ProgressionCurve(curve)
        self.floors = list(floors) if floors is not None else repository.get_tower_floors()
        self.run: TowerRunState = create_tower_run(seed, difficulty, self.floors, config)
        self.record = record or TowerRecord()
        self.enemy_policy = enemy_policy or ScriptedEnemyPolicy()
        self.player_policy = player_policy or BasicPlayerPolicy()
        self.battle_config = battle_config
        self.bench: list[Unit] = []
        self.inventory: list[str] = []
        self.gold = 0
        self.results: list[FloorResult] = []
        self._record_updated = False

    @property
    def is_finished(self) -> bool:
        return self.run.is_completed

    # =========================================================================
    # FLOORS
    # =========================================================================

    def play_floor(self) -> Optional[FloorResult]:
        """
        Play the floor under the cursor.

        Returns:
            FloorResult, or None when the run is already over
        """
        floor = get_current_floor(self.run, self.floors)
        if self.run.is_completed or floor is None:
            return None

        if isinstance(floor, RestFloor):
            result = self._rest(floor)
        else:
            result = self._battle(floor)

        self.results.append(result)
        if self.run.is_completed:
            self._finish()
        return result

    def run_to_completion(self) -> TowerRunState:
        while not self.run.is_completed:
            if self.play_floor() is None:
                break
        return self.run

    def _rest(self, floor: RestFloor) -> FloorResult:
        fraction = floor.rest.heal_fraction_override
        if fraction is None:
            fraction = self.run.config.heal_fraction_at_rest
        self.team = heal_team_at_rest(self.team, fraction)
        self.run = complete_rest_floor(
            self.run, self.floors, TowerRestSummary(healed_fraction=fraction, loadout_adjusted=False)
        )
        logger.info(f"Rested on floor {floor.floor_number}, healed {fraction:.0%}")
        return FloorResult(floor_number=floor.floor_number, floor_type=floor.type, outcome=FloorOutcome.RESTED)

    def build_floor_battle(self, floor: TowerFloor) -> BattleState:
        """Normalized party against the floor's encounter, scaled for the run."""
        party = normalize_party_for_floor(self.team.units, floor, self.curve)
        battle_team = replace(self.team, units=tuple(party))
        scaling = calculate_enemy_scaling(floor.floor_number, self.run.difficulty, self.run.config)
        return create_battle_from_encounter(
            floor.encounter_id, battle_team, self.repository, scaling=scaling, config=self.battle_config
        )

    def resolve_battle(self, state: BattleState, rng: BattleRng) -> tuple[BattleState, FloorOutcome]:
        """
        Play rounds until the battle ends or the round limit is reached.

        Raises:
            RuntimeError: If the player policy leaves the queue unexecutable
        """
        for _ in range(self.run.config.max_rounds_per_battle):
            state = self.player_policy.plan(state, self.repository)
            result = execute_round(state, rng, self.enemy_policy, self.repository)
            if not result.success:
                raise RuntimeError(f"Player policy produced an unexecutable queue: {result.error}")
            state = result.state
            if state.status == BattleStatus.PLAYER_VICTORY:
                return state, FloorOutcome.VICTORY
            if state.status == BattleStatus.PLAYER_DEFEAT:
                return state, FloorOutcome.DEFEAT

        logger.warning(f"Battle unresolved after {self.run.config.max_rounds_per_battle} rounds; retreating")
        return state, FloorOutcome.RETREAT

    def _battle(self, floor: TowerFloor) -> FloorResult:
        rng = BattleRng(seed=derive_seed(self.run.seed, f"floor-{floor.floor_number}"))
        state, outcome = self.resolve_battle(self.build_floor_battle(floor), rng)
        self._carry_back_hp(state)

        result = FloorResult(
            floor_number=floor.floor_number,
            floor_type=floor.type,
            outcome=outcome,
            rounds=state.round_number,
            final_state=state,
        )
        rewards: list[TowerRewardEntry] = []
        if outcome == FloorOutcome.VICTORY:
            result.level_ups = self._claim_encounter_rewards(floor, state, rng)
            rewards = get_rewards_for_floor(self.repository.get_tower_rewards(), floor.floor_number)

        self.run = record_battle_result(self.run, self.floors, outcome, summarize_battle(state), rewards)
        self._claim_tower_rewards()
        result.rewards = rewards
        return result

    # =========================================================================
    # REWARDS
    # =========================================================================

    def _carry_back_hp(self, state: BattleState) -> None:
        units = []
        for unit in self.team.units:
            fought = state.player_team.get_unit(unit.id)
            if fought is not None:
                max_hp = get_effective_max_hp(unit, self.team)
                unit = replace(unit, current_hp=max(0, min(fought.current_hp, max_hp)))
            units.append(unit)
        self.team = replace(self.team, units=tuple(units))

    def _claim_encounter_rewards(self, floor: TowerFloor, state: BattleState, rng: BattleRng) -> list[LevelUpEvent]:
        encounter = self.repository.get_encounter(floor.encounter_id)
        survivors = len(state.living_players())
        distribution = distribute_rewards(self.team, calculate_battle_rewards(encounter, survivors))
        self.team = distribution.updated_team
        self.gold += distribution.gold_earned

        equipment = encounter.reward.equipment
        if isinstance(equipment, FixedEquipmentReward):
            self.inventory.append(equipment.item_id)
        elif isinstance(equipment, ChoiceEquipmentReward):
            self.inventory.append(equipment.options[0])

        for enemy_id in encounter.enemies:
            self.inventory.extend(roll_drops(self.repository.get_enemy(enemy_id), rng))

        if encounter.reward.djinn:
            self._grant_djinn(encounter.reward.djinn)
        if encounter.reward.unlock_unit:
            self._recruit(encounter.reward.unlock_unit)
        return distribution.level_ups

    def _claim_tower_rewards(self) -> None:
        for entry in self.run.pending_rewards:
            for content_id in entry.ids:
                if entry.type == "equipment":
                    self.inventory.append(content_id)
                elif entry.type == "djinn":
                    self._grant_djinn(content_id)
                else:
                    self._recruit(content_id)
        self.run = clear_pending_rewards(self.run)

    def _grant_djinn(self, djinn_id: str) -> None:
        result = collect_djinn(self.team, djinn_id, self.repository)
        if not result.success:
            logger.warning(f"Djinn reward {djinn_id} not granted: {result.error}")
            return
        self.team = result.team
        if len(self.team.equipped_djinn) < MAX_EQUIPPED_DJINN:
            equipped = equip_djinn(self.team, djinn_id, self.repository)
            if equipped.success:
                self.team = equipped.team

    def _recruit(self, unit_id: str) -> None:
        known = {u.id for u in self.team.units} | {u.id for u in self.bench}
        if unit_id in known:
            return
        level = max(u.level for u in self.team.units)
        recruit = create_unit(self.repository.get_unit_definition(unit_id), level=level)
        if len(self.team.units) < MAX_PARTY_SIZE:
            self.team = update_team(self.team, units=self.team.units + (recruit,))
        else:
            self.bench.append(recruit)
        logger.info(f"Recruited {recruit.name}")

    def _finish(self) -> None:
        if self._record_updated:
            return
        self.record = update_tower_record(self.record, self.run)
        self._record_updated = True
        status = "failed" if self.run.is_failed else "completed"
        logger.info(
            f"Tower run {status}: highest floor {self.run.stats.highest_floor}, "
            f"{self.run.stats.victories} victories"
        )
