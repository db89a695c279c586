"""
Sample master data written into empty storage on first start.
"""
from datetime import datetime

from entities import (
    PER_PARENT, PER_STUDENT, CostCenter, IncomeItem, Parent, Role, Section, Student,
    Teacher, User,
)


def build_sample_data(now=None):
    """Collection name -> list of sample records"""
    now = now or datetime.now()
    return {
        'parents': [
            Parent(id='1', first_name='John', last_name='Smith',
                   email='john@example.com', phone='123-456-7890'),
            Parent(id='2', first_name='Sarah', last_name='Johnson',
                   email='sarah@example.com', phone='098-765-4321'),
            Parent(id='3', first_name='Mike', last_name='Brown',
                   email='mike@example.com', phone='555-123-4567'),
        ],
        'students': [
            Student(id='1', first_name='Emma', last_name='Smith', parent_id='1',
                    teacher='Mrs. Davis', section='A'),
            Student(id='2', first_name='Liam', last_name='Smith', parent_id='1',
                    teacher='Mr. Wilson', section='B'),
            Student(id='3', first_name='Olivia', last_name='Johnson', parent_id='2',
                    teacher='Mrs. Davis', section='A'),
            Student(id='4', first_name='Noah', last_name='Brown', parent_id='3',
                    teacher='Mr. Thompson', section='C'),
        ],
        'income_items': [
            IncomeItem(id='1', name='Tuition Fee', price=500, type=PER_STUDENT),
            IncomeItem(id='2', name='Registration Fee', price=100, type=PER_PARENT),
            IncomeItem(id='3', name='Activity Fee', price=50, type=PER_STUDENT),
            IncomeItem(id='4', name='Transport Fee', price=200, type=PER_STUDENT),
        ],
        'cost_centers': [
            CostCenter(id='1', name='Administration', code='ADM',
                       description='Administrative expenses'),
            CostCenter(id='2', name='Facilities', code='FAC',
                       description='Building and maintenance'),
            CostCenter(id='3', name='Education', code='EDU',
                       description='Educational materials and supplies'),
            CostCenter(id='4', name='Technology', code='TECH',
                       description='IT equipment and software'),
        ],
        'teachers': [
            Teacher(id='1', first_name='Alice', last_name='Johnson', email='alice@school.com',
                    phone='123-456-7890', subjects=['Math', 'Science'], employee_id='EMP001'),
            Teacher(id='2', first_name='Bob', last_name='Smith', email='bob@school.com',
                    phone='098-765-4321', subjects=['English', 'History'], employee_id='EMP002'),
            Teacher(id='3', first_name='Carol', last_name='Brown', email='carol@school.com',
                    phone='555-123-4567', subjects=['Art', 'Music'], employee_id='EMP003'),
        ],
        'sections': [
            Section(id='1', name='Section A', grade='Grade 1', capacity=30, teacher_id='1',
                    description='Primary section for Grade 1'),
            Section(id='2', name='Section B', grade='Grade 1', capacity=25, teacher_id='2',
                    description='Secondary section for Grade 1'),
            Section(id='3', name='Section A', grade='Grade 2', capacity=28, teacher_id='3',
                    description='Primary section for Grade 2'),
        ],
        'roles': [
            Role(id='1', name='Administrator', description='Full system access',
                 permissions=['read', 'write', 'delete', 'manage_users'], created_at=now),
            Role(id='2', name='Teacher', description='Teacher access',
                 permissions=['read', 'write'], created_at=now),
            Role(id='3', name='Staff', description='Staff access',
                 permissions=['read'], created_at=now),
        ],
        'users': [
            User(id='1', username='admin', email='admin@school.com', first_name='Admin',
                 last_name='User', role_id='1', created_at=now),
            User(id='2', username='teacher1', email='teacher1@school.com', first_name='John',
                 last_name='Teacher', role_id='2', created_at=now),
            User(id='3', username='staff1', email='staff1@school.com', first_name='Jane',
                 last_name='Staff', role_id='3', created_at=now),
        ],
    }
