import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from rhyme_assist.config import EngineSettings
from rhyme_assist.core.cmudict_loader import PronunciationIndex


LYRIC_DICTIONARY = """\
;;; Small dictionary covering the lyric fixtures below
IT'S  IH1 T S
TIME  T AY1 M
RHYME  R AY1 M
TO  T UW1
SHINE  SH AY1 N
WE  W IY1
NIGHT  N AY1 T
IN  IH1 N
SEEN  S IY1 N
SIN  S IH1 N
"""

SUGGESTION_DICTIONARY = """\
CLIMB  K L AY1 M
CRIME  K R AY1 M
DIME  D AY1 M
LIME  L AY1 M
MIME  M AY1 M
FINE  F AY1 N
LINE  L AY1 N
MINE  M AY1 N
SHINE  SH AY1 N
BLUE  B L UW1
"""


@pytest.fixture
def lyric_index():
    """Index where "time" and "rhyme" share the key ``AY1 M``."""

    return PronunciationIndex.build(LYRIC_DICTIONARY)


@pytest.fixture
def suggestion_index():
    """Five exact ``AY1 M`` words and four near ``AY1 N`` words."""

    return PronunciationIndex.build(SUGGESTION_DICTIONARY)


@pytest.fixture
def dictionary_file(tmp_path):
    path = tmp_path / "cmudict.txt"
    path.write_text(LYRIC_DICTIONARY, encoding="utf-8")
    return path


@pytest.fixture
def settings(tmp_path, dictionary_file):
    """Settings that keep the dictionary and cache inside ``tmp_path``."""

    return EngineSettings(
        dict_path=dictionary_file,
        cache_path=tmp_path / "cache" / "pronunciation-index.json",
        cache_enabled=True,
    )
