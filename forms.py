"""
Input validation for the master-data endpoints.

JSON request bodies are turned into form data (``formdata``) and validated
with Flask-WTF forms. CSRF protection is off for these forms because they
only ever back the JSON API.
"""
import math

from flask_wtf import FlaskForm
from werkzeug.datastructures import MultiDict
from wtforms import (
    BooleanField, EmailField, Field, FloatField, IntegerField, SelectField, StringField,
)
from wtforms import validators
from wtforms.validators import DataRequired, Email, InputRequired, NumberRange, Optional

from entities import PRICING_TYPES, camel_case, snake_case
from errors import ValidationError


def formdata(payload):
    """Flatten a JSON object into form data with snake_case keys"""
    if not isinstance(payload, dict):
        raise ValidationError('Request body must be a JSON object')

    data = MultiDict()
    for key, value in payload.items():
        name = snake_case(key)
        if value is None:
            continue
        if isinstance(value, (list, tuple)):
            for item in value:
                data.add(name, str(item))
        elif isinstance(value, bool):
            data.add(name, value)
        else:
            data.add(name, str(value))
    return data


class ListField(Field):
    """Multi-valued field; an absent key yields an empty list"""

    def process_formdata(self, valuelist):
        self.data = [value for value in valuelist if value]

    def _value(self):
        return ', '.join(self.data or [])


class FlagField(BooleanField):
    """BooleanField that keeps its default when the key is absent"""

    def process_formdata(self, valuelist):
        if valuelist:
            super().process_formdata(valuelist)


class ApiForm(FlaskForm):
    class Meta:
        csrf = False

    def validated_data(self):
        """Validated field values keyed by attribute name.

        Raises ValidationError listing the invalid fields (camelCase).
        JSON booleans are only accepted by flag fields.
        """
        valid = self.validate()
        for field in self:
            if isinstance(field, FlagField):
                continue
            if any(isinstance(value, bool) for value in field.raw_data or ()):
                field.errors = [*field.errors, 'Expected a value, not a boolean.']
                valid = False

        if not valid:
            invalid = [camel_case(name) for name in self.errors]
            details = '; '.join(
                f'{camel_case(name)}: {" ".join(map(str, messages))}'
                for name, messages in self.errors.items()
            )
            raise ValidationError(f'Invalid input ({details})', invalid)

        return {
            name: (None if field.data == '' else field.data)
            for name, field in self._fields.items()
        }


class ParentForm(ApiForm):
    first_name = StringField('First Name', validators=[DataRequired()])
    last_name = StringField('Last Name', validators=[DataRequired()])
    email = EmailField('Email', validators=[Optional(), Email()])
    phone = StringField('Phone')


class StudentForm(ApiForm):
    first_name = StringField('First Name', validators=[DataRequired()])
    last_name = StringField('Last Name', validators=[DataRequired()])
    parent_id = StringField('Parent', validators=[DataRequired()])
    teacher = StringField('Teacher')
    section = StringField('Section')


class IncomeItemForm(ApiForm):
    name = StringField('Item Name', validators=[DataRequired()])
    price = FloatField('Price', validators=[InputRequired()])
    type = SelectField('Pricing', choices=[(t, t) for t in PRICING_TYPES],
                       validators=[DataRequired()])
    description = StringField('Description')

    def validate_price(self, field):
        if field.data is not None and (not math.isfinite(field.data) or field.data <= 0):
            raise validators.ValidationError('Price must be greater than 0.')


class TeacherForm(ApiForm):
    first_name = StringField('First Name', validators=[DataRequired()])
    last_name = StringField('Last Name', validators=[DataRequired()])
    email = EmailField('Email', validators=[Optional(), Email()])
    phone = StringField('Phone')
    subjects = ListField('Subjects')
    employee_id = StringField('Employee ID')


class SectionForm(ApiForm):
    name = StringField('Section Name', validators=[DataRequired()])
    grade = StringField('Grade', validators=[DataRequired()])
    capacity = IntegerField('Capacity', validators=[InputRequired(), NumberRange(min=0)])
    teacher_id = StringField('Teacher')
    description = StringField('Description')


class CostCenterForm(ApiForm):
    name = StringField('Name', validators=[DataRequired()])
    code = StringField('Code', validators=[DataRequired()])
    description = StringField('Description')


class RoleForm(ApiForm):
    name = StringField('Role Name', validators=[DataRequired()])
    description = StringField('Description')
    permissions = ListField('Permissions')
    is_active = FlagField('Active', default=True)


class UserForm(ApiForm):
    username = StringField('Username', validators=[DataRequired()])
    email = EmailField('Email', validators=[DataRequired(), Email()])
    first_name = StringField('First Name', validators=[DataRequired()])
    last_name = StringField('Last Name', validators=[DataRequired()])
    role_id = StringField('Role', validators=[DataRequired()])
    is_active = FlagField('Active', default=True)


# Collection name -> form
FORMS = {
    'parents': ParentForm,
    'students': StudentForm,
    'income_items': IncomeItemForm,
    'teachers': TeacherForm,
    'sections': SectionForm,
    'cost_centers': CostCenterForm,
    'roles': RoleForm,
    'users': UserForm,
}


def validate_payload(collection, payload):
    """Validate a JSON body for ``collection`` and return record attributes"""
    form = FORMS[collection](formdata=formdata(payload))
    return form.validated_data()
