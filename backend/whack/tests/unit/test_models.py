import pytest
from pydantic import ValidationError

from whack.session.models import Player, Target, TargetKind
from whack.session.settings import SessionSettings


class TestPlayerApplyHit:
    def test_safe_hit_scores_one_point(self):
        player = Player(connection_id="c1", name="Alice")
        player.apply_hit(TargetKind.SAFE)
        assert player.score == 1
        assert player.lives == 3
        assert player.is_game_over is False

    def test_hazard_hit_costs_a_life(self):
        player = Player(connection_id="c1", name="Alice")
        player.apply_hit(TargetKind.HAZARD)
        assert player.score == 0
        assert player.lives == 2
        assert player.is_game_over is False

    def test_last_life_sets_game_over(self):
        player = Player(connection_id="c1", name="Alice", lives=1)
        player.apply_hit(TargetKind.HAZARD)
        assert player.lives == 0
        assert player.is_game_over is True

    def test_lives_never_go_negative(self):
        player = Player(connection_id="c1", name="Alice", lives=0, is_game_over=True)
        player.apply_hit(TargetKind.HAZARD)
        assert player.lives == 0


class TestTargetClaim:
    def test_claim_records_player(self):
        target = Target(kind=TargetKind.SAFE, x=0.1, z=0.2, spawn_time=0)
        assert target.is_claimed is False
        target.claim("c1")
        assert target.is_claimed is True
        assert target.claimed_by == "c1"

    def test_second_claim_raises(self):
        target = Target(kind=TargetKind.HAZARD, x=0.0, z=0.0, spawn_time=0)
        target.claim("c1")
        with pytest.raises(ValueError, match="already claimed"):
            target.claim("c2")
        assert target.claimed_by == "c1"

    def test_is_hazard(self):
        assert Target(kind=TargetKind.HAZARD, x=0, z=0, spawn_time=0).is_hazard is True
        assert Target(kind=TargetKind.SAFE, x=0, z=0, spawn_time=0).is_hazard is False


class TestSessionSettings:
    def test_defaults(self):
        settings = SessionSettings()
        assert settings.cube_spawn_delay_min == 3.0
        assert settings.cube_spawn_delay_max == 5.0
        assert settings.cube_stay_duration == 2.0
        assert settings.hazard_probability == 0.3
        assert settings.spawn_radius == 0.8
        assert settings.starting_lives == 3
        assert settings.min_players == 2

    def test_frozen(self):
        settings = SessionSettings()
        with pytest.raises(ValidationError):
            settings.min_players = 5

    def test_delay_bounds_must_be_ordered(self):
        with pytest.raises(ValidationError, match="cube_spawn_delay_min"):
            SessionSettings(cube_spawn_delay_min=6.0, cube_spawn_delay_max=5.0)

    def test_min_players_must_not_exceed_max(self):
        with pytest.raises(ValidationError, match="min_players"):
            SessionSettings(min_players=5, max_players=4)

    @pytest.mark.parametrize("probability", [-0.1, 1.1])
    def test_hazard_probability_range(self, probability):
        with pytest.raises(ValidationError, match="hazard_probability"):
            SessionSettings(hazard_probability=probability)
