import pickle

import pytest

from nhl_predictor.errors import (
    InvalidGameRecordError,
    MissingRatingError,
    SamplingStallError,
    TiebreakExhaustionError,
)


@pytest.mark.parametrize("error, attr, value", [
    (MissingRatingError("BOS"), "team", "BOS"),
    (InvalidGameRecordError(2022020001, "tied score 2-2"), "reason", "tied score 2-2"),
    (TiebreakExhaustionError(["BOS", "TOR"]), "teams", ("BOS", "TOR")),
    (SamplingStallError(100000, 24.0, 0.05), "attempts", 100000),
])
def test_survives_pickling(error, attr, value):
    restored = pickle.loads(pickle.dumps(error))
    assert type(restored) is type(error)
    assert getattr(restored, attr) == value
    assert str(restored) == str(error)
