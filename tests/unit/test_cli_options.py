"""
Unit tests for MCQ answer labelling in the terminal driver.
"""

import pytest

from mastery_loop.cli.main import option_choices, option_label


class TestOptionLabels:
    """Every option gets a distinct, typeable label."""

    @pytest.mark.parametrize("index,label", [(0, "A"), (7, "H"), (8, "I"), (25, "Z"), (26, "AA"), (27, "AB")])
    def test_labels(self, index, label):
        assert option_label(index) == label

    def test_more_than_eight_options_are_all_reachable(self):
        options = [f"option {n}" for n in range(30)]

        choices = option_choices(options)

        assert list(choices.values()) == options
        assert choices["I"] == "option 8"
        assert choices["AD"] == "option 29"

    def test_duplicate_options_keep_their_positions(self):
        choices = option_choices(["m/s", "m/s", "N"])
        assert choices == {"A": "m/s", "B": "m/s", "C": "N"}
