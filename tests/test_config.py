import pytest

from writemet.config import PipelineConfig


def test_defaults():
    config = PipelineConfig()

    assert config.min_request_interval == 12.0
    assert config.relevance_batch_size == 20
    assert config.evaluation_batch_size == 10
    assert config.cooldown_every == 4
    assert config.difficulty == "intermediate"


def test_from_env_overrides_and_coerces():
    config = PipelineConfig.from_env(
        {
            "WRITEMET_MIN_REQUEST_INTERVAL": "3.5",
            "WRITEMET_EVALUATION_BATCH_SIZE": " 5 ",
            "WRITEMET_DIFFICULTY": "advanced",
            "WRITEMET_COOLDOWN_SECONDS": "",
            "UNRELATED": "1",
        }
    )

    assert config.min_request_interval == 3.5
    assert config.evaluation_batch_size == 5
    assert config.difficulty == "advanced"
    assert config.cooldown_seconds == 60.0


def test_from_env_rejects_bad_numbers():
    with pytest.raises(ValueError, match="WRITEMET_RELEVANCE_BATCH_SIZE"):
        PipelineConfig.from_env({"WRITEMET_RELEVANCE_BATCH_SIZE": "twenty"})


@pytest.mark.parametrize(
    "overrides",
    [{"relevance_batch_size": 0}, {"min_request_interval": -1.0}, {"difficulty": "expert"}],
)
def test_invalid_values_are_rejected(overrides):
    with pytest.raises(ValueError):
        PipelineConfig(**overrides)
