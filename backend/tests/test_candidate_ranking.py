from datetime import date, time

import pytest

from coverdesk.core.exceptions import NotFoundError
from coverdesk.models import SubstitutionType
from coverdesk.services.assignment import assign_substitute
from coverdesk.services.candidate_ranking import (
    QUALIFIED_POINTS,
    rank_lesson_candidates,
    rank_substitutes,
    score_lesson_candidate,
    sort_lesson_candidates,
)
from coverdesk.services.commitments import Availability, CommitmentSnapshot, LessonSlot, TeacherSnapshot

MONDAY = date(2026, 10, 19)


def _slot(**overrides):
    values = dict(
        scheduled_lesson_id="lesson-1",
        timetable_id="tt",
        day_of_week=0,
        period_id="p1",
        period_number=1,
        start_time=time(8, 0),
        end_time=time(8, 45),
        teacher_ids=frozenset({"absent"}),
        subject_ids=frozenset({"maths"}),
        subject_names=("Mathematics",),
    )
    values.update(overrides)
    return LessonSlot(**values)


def _teacher(teacher_id, name=None, **overrides):
    return TeacherSnapshot(id=teacher_id, name=name or teacher_id.title(), **overrides)


ABSENT = _teacher("absent", department_id="dept-maths")


def test_qualified_candidate_outranks_otherwise_identical_unqualified_one():
    commitments = CommitmentSnapshot()
    qualified = score_lesson_candidate(
        _teacher("qa", "Zed", subject_ids=frozenset({"maths"})), _slot(), commitments, ABSENT
    )
    unqualified = score_lesson_candidate(_teacher("ub", "Amy"), _slot(), commitments, ABSENT)

    assert qualified.is_qualified is True
    assert unqualified.is_qualified is False
    assert qualified.score - unqualified.score == QUALIFIED_POINTS
    ranked = sort_lesson_candidates([unqualified, qualified])
    assert [item.teacher_id for item in ranked] == ["qa", "ub"]


def test_unqualified_candidate_without_notes_stays_below_auto_assign_threshold():
    commitments = CommitmentSnapshot()
    commitments.availability[("best", "p1")] = Availability(importance=3, reason="Free afternoon")
    commitments.subject_history["best"]["maths"] = 4
    best_case = _teacher("best", department_id="dept-maths", available_for_substitution=True)

    candidate = score_lesson_candidate(best_case, _slot(), commitments, ABSENT)

    assert candidate.score == 90
    assert candidate.score < 100


def test_match_reasons_follow_evaluation_order():
    commitments = CommitmentSnapshot()
    commitments.substitutions_this_week["uma"] = 3
    commitments.availability[("uma", "p1")] = Availability(importance=-2, reason="Prep time")
    commitments.subject_history["uma"]["maths"] = 1
    uma = _teacher(
        "uma",
        "Uma Cover",
        department_id="dept-maths",
        available_for_substitution=True,
        subject_ids=frozenset({"maths"}),
    )

    candidate = score_lesson_candidate(uma, _slot(), commitments, ABSENT)

    assert candidate.match_reasons == [
        "Qualified to teach Mathematics",
        "Moderate workload (3 substitutions this week)",
        "Same department as Absent",
        "On substitution reserve",
        "Prefers to avoid this period (-2): Prep time",
        "Previously substituted 1x in this subject",
    ]
    assert candidate.score == 100 + 8 + 25 + 20 - 10 + 5
    assert candidate.availability_importance == -2


def test_negative_availability_reorders_but_never_disqualifies():
    commitments = CommitmentSnapshot()
    commitments.availability[("avoid", "p1")] = Availability(importance=-3)
    candidates = rank_lesson_candidates(
        [_teacher("avoid", "Avery"), _teacher("neutral", "Nina")],
        _slot(),
        commitments,
        absent=ABSENT,
        absent_teacher_id="absent",
    )

    assert [item.teacher_id for item in candidates] == ["neutral", "avoid"]
    assert candidates[1].score == candidates[0].score - 15


def test_informal_notes_only_count_without_formal_qualification():
    notes_only = score_lesson_candidate(
        _teacher("n", qualification_notes="Studied maths"), _slot(), CommitmentSnapshot(), ABSENT
    )
    both = score_lesson_candidate(
        _teacher("b", qualification_notes="Studied maths", subject_ids=frozenset({"maths"})),
        _slot(),
        CommitmentSnapshot(),
        ABSENT,
    )

    assert "Informal qualification: Studied maths" in notes_only.match_reasons
    assert notes_only.score == 40 + 20
    assert not any(reason.startswith("Informal") for reason in both.match_reasons)


def test_workload_bonus_shrinks_with_weekly_substitutions():
    commitments = CommitmentSnapshot()
    commitments.substitutions_this_week.update({"busy": 6, "light": 1})
    ranked = rank_lesson_candidates(
        [_teacher("busy"), _teacher("light"), _teacher("idle")],
        _slot(),
        commitments,
        absent=ABSENT,
        absent_teacher_id="absent",
    )

    assert [(item.teacher_id, item.score) for item in ranked] == [("idle", 20), ("light", 16), ("busy", 0)]


def test_co_teacher_is_never_busy_and_ranks_first():
    commitments = CommitmentSnapshot()
    commitments.teaching[1].add("co")
    slot = _slot(teacher_ids=frozenset({"absent", "co"}))

    ranked = rank_lesson_candidates(
        [_teacher("co"), _teacher("free", subject_ids=frozenset({"maths"}))],
        slot,
        commitments,
        absent=ABSENT,
        absent_teacher_id="absent",
    )

    assert ranked[0].teacher_id == "co"
    assert ranked[0].is_co_teacher is True
    assert ranked[0].match_reasons[0] == "Co-teacher on this lesson"


def test_busy_teachers_are_left_out_of_the_pool():
    commitments = CommitmentSnapshot()
    commitments.teaching[1].add("teaching")
    commitments.covering[1].add("covering")
    commitments.reserve[1].add("on-call")

    ranked = rank_lesson_candidates(
        [_teacher("teaching"), _teacher("covering"), _teacher("on-call"), _teacher("absent")],
        _slot(),
        commitments,
        absent=ABSENT,
        absent_teacher_id="absent",
    )

    assert [item.teacher_id for item in ranked] == ["on-call"]


def test_teachers_absent_themselves_are_busy_even_as_co_teachers():
    commitments = CommitmentSnapshot()
    commitments.absent_all_day.add("co")
    commitments.absent[3].add("late")
    slot = _slot(teacher_ids=frozenset({"absent", "co"}))

    ranked = rank_lesson_candidates(
        [_teacher("co"), _teacher("late"), _teacher("free")],
        slot,
        commitments,
        absent=ABSENT,
        absent_teacher_id="absent",
    )
    assert [item.teacher_id for item in ranked] == ["free", "late"]

    later = rank_lesson_candidates(
        [_teacher("co"), _teacher("late"), _teacher("free")],
        _slot(period_number=3, period_id="p3"),
        commitments,
        absent=ABSENT,
        absent_teacher_id="absent",
    )
    assert [item.teacher_id for item in later] == ["free"]


@pytest.mark.parametrize(
    ("sort_key", "expected"),
    [
        ("score", ["carl", "anna", "bert"]),
        ("workload", ["bert", "anna", "carl"]),
        ("qualified", ["carl", "anna", "bert"]),
        ("reserve", ["anna", "carl", "bert"]),
        ("name", ["anna", "bert", "carl"]),
        ("bogus", ["carl", "anna", "bert"]),
        (None, ["carl", "anna", "bert"]),
    ],
)
def test_sort_keys(sort_key, expected):
    commitments = CommitmentSnapshot()
    commitments.substitutions_this_week.update({"anna": 1, "carl": 4})
    teachers = [
        _teacher("anna", "Anna", available_for_substitution=True),
        _teacher("bert", "Bert"),
        _teacher("carl", "Carl", subject_ids=frozenset({"maths"})),
    ]

    ranked = rank_lesson_candidates(
        teachers, _slot(), commitments, absent=ABSENT, absent_teacher_id="absent", sort_key=sort_key
    )

    assert [item.teacher_id for item in ranked] == expected


def test_ranking_is_deterministic_with_name_then_id_tie_breaks():
    teachers = [_teacher("id-2", "Same Name"), _teacher("id-1", "Same Name"), _teacher("id-3", "Another")]

    first = rank_lesson_candidates(
        teachers, _slot(), CommitmentSnapshot(), absent=ABSENT, absent_teacher_id="absent"
    )
    second = rank_lesson_candidates(
        list(reversed(teachers)), _slot(), CommitmentSnapshot(), absent=ABSENT, absent_teacher_id="absent"
    )

    assert [item.teacher_id for item in first] == ["id-3", "id-1", "id-2"]
    assert [item.teacher_id for item in second] == [item.teacher_id for item in first]


def test_rank_substitutes_reads_commitments_from_the_database(monday_scenario, factory, db_session):
    free_colleague = factory.teacher("Fay", "Free", qualification_notes="Maths minor")
    factory.teacher("Ivan", "Inactive", qualifications=[monday_scenario.maths], is_active=False)
    factory.availability(free_colleague, factory.period(1), 2, reason="Likes mornings")
    db_session.commit()

    period_one = rank_substitutes(
        db_session,
        absent_teacher_id=monday_scenario.absent.id,
        scheduled_lesson_id=monday_scenario.lessons[1].id,
        on_date=MONDAY,
    )
    assert [item.name for item in period_one] == ["Uma Cover", "Fay Free"]
    assert period_one[0].score == 100 + 20 + 25 + 20
    assert period_one[1].score == 40 + 20 + 10
    assert "Prefers this period (+2): Likes mornings" in period_one[1].match_reasons

    period_three = rank_substitutes(
        db_session,
        absent_teacher_id=monday_scenario.absent.id,
        scheduled_lesson_id=monday_scenario.lessons[3].id,
        on_date=MONDAY,
    )
    assert [item.name for item in period_three] == ["Fay Free"]


def test_weekly_workload_and_same_period_cover_come_from_existing_substitutions(monday_scenario, factory, db_session):
    assign_substitute(
        db_session,
        absence_id=monday_scenario.absence.id,
        scheduled_lesson_id=monday_scenario.lessons[1].id,
        substitute_teacher_id=monday_scenario.substitute.id,
        coverage_type=SubstitutionType.teacher_substitute,
    )

    period_five = rank_substitutes(
        db_session,
        absent_teacher_id=monday_scenario.absent.id,
        scheduled_lesson_id=monday_scenario.lessons[5].id,
        on_date=MONDAY,
    )
    assert period_five[0].substitutions_this_week == 1
    assert period_five[0].previous_subject_substitutions == 1
    assert period_five[0].score == 100 + 16 + 25 + 20 + 5

    second_absent = factory.teacher("Sam", "Second")
    other_absence = factory.absence(second_absent)
    parallel = factory.lesson(
        monday_scenario.timetable,
        teachers=[second_absent],
        subjects=[monday_scenario.maths],
        period=factory.period(1),
    )
    db_session.commit()
    parallel_candidates = rank_substitutes(
        db_session,
        absent_teacher_id=other_absence.teacher_id,
        scheduled_lesson_id=parallel.id,
        on_date=MONDAY,
    )
    assert monday_scenario.substitute.id not in {item.teacher_id for item in parallel_candidates}


def test_rank_substitutes_unknown_lesson_and_empty_pool(factory, db_session):
    maths = factory.subject("Mathematics", code="ma")
    timetable = factory.timetable()
    lonely = factory.teacher("Lone")
    scheduled = factory.lesson(timetable, teachers=[lonely], subjects=[maths], period=factory.period(1))
    db_session.commit()

    with pytest.raises(NotFoundError):
        rank_substitutes(db_session, absent_teacher_id=lonely.id, scheduled_lesson_id="missing")

    assert rank_substitutes(db_session, absent_teacher_id=lonely.id, scheduled_lesson_id=scheduled.id) == []
