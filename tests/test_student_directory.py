import json

import pytest

from guidance_dashboard.modules.errors import InvalidStudentData
from guidance_dashboard.modules.qr_generator import decode_payload
from guidance_dashboard.modules.student_manager import (
    SeedRoster, Student, student_identity, SOURCE_SEED, SOURCE_DYNAMIC
)


def _dynamic(name, grade='7', section='Love', contact='09990000000'):
    return Student(
        student_id=student_identity(grade, section, name),
        name=name,
        grade=grade,
        section=section,
        parent_contact=contact,
        qr_data='{}'
    )


def test_identity_strips_all_whitespace():
    assert student_identity('9', 'Peace', '  Juan  Dela Cruz ') == student_identity('9', 'Peace', 'Juan Dela Cruz')
    assert student_identity(9, 'Peace', 'Juan Dela Cruz') == '9-Peace-JuanDelaCruz'


def test_seed_roster_attaches_grade_and_section(roster_dir):
    students = list(SeedRoster(roster_dir))

    ana = students[0]
    assert ana.student_id == '7-Love-DelaCruz,Ana'
    assert ana.grade == '7'
    assert ana.section == 'Love'
    assert ana.parent_contact == '09171234567'
    assert ana.source == SOURCE_SEED
    assert decode_payload(ana.qr_data)['name'] == 'Dela Cruz, Ana'


def test_seed_roster_is_restartable(roster_dir):
    roster = SeedRoster(roster_dir)

    assert [s.student_id for s in roster] == [s.student_id for s in roster]
    assert len(list(roster.load_seed_roster())) == 3


def test_seed_roster_skips_bad_and_missing_files(roster_dir):
    (roster_dir / 'g8.json').write_text('{not json', encoding='utf-8')
    (roster_dir / 'g10.json').write_text(json.dumps({'grade': '10'}), encoding='utf-8')

    students = list(SeedRoster(roster_dir))

    assert {s.grade for s in students} == {'7', '9'}


def test_resolve_prefers_seed_over_dynamic(directory):
    identity = '7-Love-DelaCruz,Ana'
    directory.upsert(_dynamic('Dela Cruz, Ana', contact='09000000000'))

    resolved = directory.resolve(identity)

    assert resolved.source == SOURCE_SEED
    assert resolved.parent_contact == '09171234567'


def test_resolve_falls_back_to_dynamic_then_none(directory):
    stored = directory.upsert(_dynamic('Santos, Bea', grade='8', section='Joy'))

    assert stored.id is not None
    assert directory.resolve(stored.student_id).source == SOURCE_DYNAMIC
    assert directory.resolve('8-Joy-Nobody') is None


def test_listing_merges_without_duplicates(directory):
    directory.upsert(_dynamic('Dela Cruz, Ana'))
    directory.upsert(_dynamic('Bautista, Leo'))
    directory.upsert(_dynamic('Santos, Bea', grade='8', section='Joy'))

    grade7 = [s.student_id for s in directory.list_by_grade('7')]

    assert grade7 == ['7-Love-DelaCruz,Ana', '7-Love-Reyes,Miguel', '7-Love-Bautista,Leo']
    assert directory.count() == 5
    assert len(directory.list_all()) == 5


def test_upsert_overwrites_mutable_fields(directory):
    directory.upsert(_dynamic('Bautista, Leo', contact='09990000000'))
    directory.upsert(_dynamic('Bautista, Leo', contact='09175550000'))

    students = directory.dynamic.list('7')

    assert len(students) == 1
    assert students[0].parent_contact == '09175550000'


def test_enroll_validates_and_builds_payload(directory):
    student = directory.enroll({
        'name': ' Bautista, Leo ',
        'grade': '7',
        'section': 'Love',
        'parent_contact': '09175550000',
        'parent_email': 'leo.parent@example.com',
    })

    assert student.student_id == '7-Love-Bautista,Leo'
    assert student.gender == 'rather_not_say'
    assert decode_payload(student.qr_data)['parent_email'] == 'leo.parent@example.com'


@pytest.mark.parametrize('form', [
    {'grade': '7', 'section': 'Love', 'parent_contact': '0917'},
    {'name': 'X', 'grade': '11', 'section': 'Love', 'parent_contact': '0917'},
    {'name': 'X', 'grade': '7', 'section': 'Love', 'parent_contact': '0917', 'parent_email': 'nope'},
])
def test_enroll_rejects_invalid_forms(directory, form):
    with pytest.raises(InvalidStudentData):
        directory.enroll(form)


def test_list_seed_filters_by_grade(directory):
    entries = directory.list_seed('9')

    assert entries == [{
        'name': 'Juan Dela Cruz', 'gender': 'male', 'lrn': '108234560201',
        'contact': '09211234567', 'email': '', 'grade': '9', 'section': 'Peace'
    }]


def test_reset_only_clears_dynamic_students(directory):
    directory.upsert(_dynamic('Bautista, Leo'))

    assert directory.reset() == 1
    assert directory.count() == 3
