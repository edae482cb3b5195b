import contextlib

import pytest
from prompt_toolkit import PromptSession
from prompt_toolkit.input import create_pipe_input
from prompt_toolkit.output import DummyOutput

from expense_tracker.models import Category
from expense_tracker.term_ui import category_labels, select_category

CATEGORIES = [
    Category(id="entertainment", name="Entertainment"),
    Category(id="groceries", name="Groceries"),
    Category(id="subscriptions", name="Subscriptions"),
]


@contextlib.contextmanager
def pipe_session():
    with create_pipe_input() as pipe:
        sess = PromptSession(input=pipe, output=DummyOutput())
        yield pipe, sess


def test_enter_accepts_prefilled_default():
    with pipe_session() as (pipe, sess):
        pipe.send_text("\r")
        assert select_category(CATEGORIES, default="groceries", session=sess) == "groceries"


def test_enter_commits_prefix_completion():
    with pipe_session() as (pipe, sess):
        pipe.send_text("Sub\r")
        assert select_category(CATEGORIES, session=sess) == "subscriptions"


def test_typed_name_is_case_insensitive():
    with pipe_session() as (pipe, sess):
        pipe.send_text("\x01\x0bentertainment\r")
        assert select_category(CATEGORIES, default="groceries", session=sess) == "entertainment"


def test_duplicate_names_are_disambiguated_by_id():
    labels = category_labels(
        [Category(id="a", name="Food"), Category(id="b", name="food"), Category(id="c", name="Rent")]
    )
    assert labels == {"Food [a]": "a", "food [b]": "b", "Rent": "c"}


def test_empty_choice_list_is_rejected():
    with pytest.raises(ValueError):
        select_category([])
