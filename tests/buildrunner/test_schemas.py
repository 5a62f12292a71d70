import pytest
from pydantic import ValidationError

from buildrunner.models import Task
from schemas import BuildRequest


def test_to_tasks_fills_missing_dependencies_and_sorts_by_id():
    request = BuildRequest(durations={"B": 2, "A": 1}, dependencies={"B": ["A"]}, worker_count=2)

    assert request.to_tasks() == [
        Task("A", 1, frozenset()),
        Task("B", 2, frozenset({"A"})),
    ]


@pytest.mark.parametrize(
    "payload",
    [
        {"durations": {"A": "5"}},
        {"durations": {"A": 5.0}},
        {"durations": {"A": True}},
        {"durations": {"A": 1}, "worker_count": True},
        {"durations": {"A": 1}, "worker_count": "2"},
    ],
)
def test_durations_and_worker_count_are_strict_ints(payload):
    with pytest.raises(ValidationError):
        BuildRequest.model_validate(payload)


def test_dependency_lists_are_still_accepted():
    request = BuildRequest.model_validate({"durations": {"A": 1, "B": 1}, "dependencies": {"B": ("A",)}})

    assert request.dependencies == {"B": {"A"}}
