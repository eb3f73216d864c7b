import pytest
from emotion_core.config import Settings

LABELS = ["Anger", "Disgust", "Fear", "Happiness", "Sadness", "Surprise", "Neutral"]

@pytest.fixture
def labels():
    return list(LABELS)

@pytest.fixture
def settings(tmp_path):
    return Settings(
        REALTIME_LOG_PATH=str(tmp_path / "results.csv"),
        BATCH_LOG_PATH=str(tmp_path / "results1.csv"),
    )
