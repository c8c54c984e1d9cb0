import pytest
from fastapi import HTTPException
from pydantic import ValidationError

from backend.models.exercise import Exercise
from backend.models.student_exercise import StudentExercise
from backend.routes.exercise_routes import (
    AssignStudentsRequest,
    CreateExerciseRequest,
    UnassignStudentRequest,
    UpdateExerciseRequest,
    assign_exercise,
    create_exercise,
    delete_exercise,
    get_exercise,
    list_exercise_assignments,
    list_exercises,
    unassign_exercise,
    update_exercise,
)
from backend.services.assignments import reconcile_exercise_students
from conftest import add_exercise, as_current_user


def _create_request(**overrides) -> CreateExerciseRequest:
    payload = {
        'title': 'Major scales',
        'audioUrl': 'https://res.cloudinary.com/demo/video/upload/exercises/scales.mp3',
        'audioKey': 'exercises/scales.mp3',
        **overrides,
    }
    return CreateExerciseRequest.model_validate(payload)


@pytest.mark.parametrize(
    ('overrides', 'message'),
    [
        ({'title': '   '}, 'Title is required'),
        ({'title': 't' * 201}, 'Title is too long'),
        ({'description': 'd' * 2001}, 'Description is too long'),
        ({'audioUrl': 'ftp://example.com/file.mp3'}, 'Invalid audio URL'),
        ({'audioKey': ' '}, 'Audio key is required'),
    ],
)
def test_create_exercise_request_rejects_invalid_fields(overrides: dict, message: str) -> None:
    with pytest.raises(ValidationError) as exception_info:
        _create_request(**overrides)

    assert message in str(exception_info.value)


def test_create_exercise_persists_row(studio_db, teacher) -> None:
    response = create_exercise(data=_create_request(title='  Major scales '), current_user=as_current_user(teacher), db=studio_db)

    assert response.title == 'Major scales'
    assert response.audio_key == 'exercises/scales.mp3'
    assert studio_db.query(Exercise).count() == 1


def test_create_exercise_is_teacher_only(studio_db, students) -> None:
    with pytest.raises(HTTPException) as exception_info:
        create_exercise(data=_create_request(), current_user=as_current_user(students[0]), db=studio_db)

    assert exception_info.value.status_code == 403
    assert studio_db.query(Exercise).count() == 0


def test_list_exercises_reports_assignment_counts(studio_db, teacher, students) -> None:
    scales = add_exercise(studio_db, title='scales')
    add_exercise(studio_db, title='arpeggios')
    reconcile_exercise_students(studio_db, scales.id, [students[0].id, students[1].id])

    items = list_exercises(current_user=as_current_user(teacher), db=studio_db)

    counts = {item.title: item.assigned_count for item in items}
    assert counts == {'scales': 2, 'arpeggios': 0}


def test_get_exercise_for_teacher_includes_roster(studio_db, teacher, students) -> None:
    scales = add_exercise(studio_db, title='scales')
    reconcile_exercise_students(studio_db, scales.id, [students[0].id])

    detail = get_exercise(exercise_id=scales.id, current_user=as_current_user(teacher), db=studio_db)

    assert [student.email for student in detail.assigned_students] == ['ada@example.com']


def test_get_exercise_for_student_hides_unassigned_and_roster(studio_db, students) -> None:
    ada, ben, _ = students
    scales = add_exercise(studio_db, title='scales')
    reconcile_exercise_students(studio_db, scales.id, [ada.id, ben.id])
    hidden = add_exercise(studio_db, title='hidden')

    detail = get_exercise(exercise_id=scales.id, current_user=as_current_user(ada), db=studio_db)
    assert detail.id == scales.id
    assert detail.assigned_students == []

    with pytest.raises(HTTPException) as exception_info:
        get_exercise(exercise_id=hidden.id, current_user=as_current_user(ada), db=studio_db)
    assert exception_info.value.status_code == 404
    assert exception_info.value.detail == 'Exercise not found'


def test_update_exercise_ignores_null_for_required_columns(studio_db, teacher) -> None:
    scales = add_exercise(studio_db, title='scales')

    response = update_exercise(
        exercise_id=scales.id,
        data=UpdateExerciseRequest.model_validate({'title': None, 'description': None}),
        current_user=as_current_user(teacher),
        db=studio_db,
    )

    assert response.title == 'scales'
    assert response.description is None


def test_update_exercise_returns_not_found(studio_db, teacher) -> None:
    with pytest.raises(HTTPException) as exception_info:
        update_exercise(
            exercise_id='missing',
            data=UpdateExerciseRequest(title='New'),
            current_user=as_current_user(teacher),
            db=studio_db,
        )

    assert exception_info.value.status_code == 404


def test_delete_exercise_removes_its_assignments(studio_db, teacher, students) -> None:
    scales = add_exercise(studio_db, title='scales')
    reconcile_exercise_students(studio_db, scales.id, [students[0].id])

    response = delete_exercise(exercise_id=scales.id, current_user=as_current_user(teacher), db=studio_db)

    assert response.message == 'Exercise deleted successfully'
    assert studio_db.query(Exercise).count() == 0
    assert studio_db.query(StudentExercise).count() == 0


def test_assign_exercise_reconciles_roster(studio_db, teacher, students) -> None:
    ada, ben, cleo = students
    scales = add_exercise(studio_db, title='scales')
    reconcile_exercise_students(studio_db, scales.id, [ada.id, ben.id])

    response = assign_exercise(
        exercise_id=scales.id,
        data=AssignStudentsRequest(student_ids=[ben.id, cleo.id]),
        current_user=as_current_user(teacher),
        db=studio_db,
    )

    assert (response.added, response.removed) == (1, 1)
    roster = list_exercise_assignments(exercise_id=scales.id, current_user=as_current_user(teacher), db=studio_db)
    assert roster.exercise_id == scales.id
    assert {student.id for student in roster.assigned_students} == {ben.id, cleo.id}


def test_assign_exercise_rejects_non_student_target(studio_db, teacher, students) -> None:
    scales = add_exercise(studio_db, title='scales')

    with pytest.raises(HTTPException) as exception_info:
        assign_exercise(
            exercise_id=scales.id,
            data=AssignStudentsRequest(student_ids=[students[0].id, teacher.id]),
            current_user=as_current_user(teacher),
            db=studio_db,
        )

    assert exception_info.value.status_code == 400
    assert exception_info.value.detail == 'One or more students not found'
    assert studio_db.query(StudentExercise).count() == 0


def test_assign_exercise_returns_not_found_for_missing_exercise(studio_db, teacher, students) -> None:
    with pytest.raises(HTTPException) as exception_info:
        assign_exercise(
            exercise_id='missing',
            data=AssignStudentsRequest(student_ids=[students[0].id]),
            current_user=as_current_user(teacher),
            db=studio_db,
        )

    assert exception_info.value.status_code == 404


def test_unassign_exercise_removes_single_pair(studio_db, teacher, students) -> None:
    ada, ben, _ = students
    scales = add_exercise(studio_db, title='scales')
    reconcile_exercise_students(studio_db, scales.id, [ada.id, ben.id])

    unassign_exercise(
        exercise_id=scales.id,
        data=UnassignStudentRequest(student_id=ada.id),
        current_user=as_current_user(teacher),
        db=studio_db,
    )

    assert [row.student_id for row in studio_db.query(StudentExercise).all()] == [ben.id]

    with pytest.raises(HTTPException) as exception_info:
        unassign_exercise(
            exercise_id=scales.id,
            data=UnassignStudentRequest(student_id=ada.id),
            current_user=as_current_user(teacher),
            db=studio_db,
        )
    assert exception_info.value.status_code == 404
    assert exception_info.value.detail == 'Assignment not found'
