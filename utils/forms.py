"""
Form helpers for the JSON API.

``ApiForm`` is a Flask-WTF form that reads JSON bodies as well as
``multipart/form-data``.  CSRF is off because callers authenticate with a
bearer token, not a cookie.

JSON lets a client send a number or boolean where a text field is expected;
such values fail that field with "Must be text." instead of reaching the
string validators.  ``AmountField`` is the exception: it takes a number or a
string and leaves parsing to the service layer.
"""
from flask import request
from flask_wtf import FlaskForm
from werkzeug.datastructures import ImmutableMultiDict
from wtforms import StringField

from utils.errors import ValidationError


class AmountField(StringField):
    """Money as text; JSON numbers are kept as their decimal string."""

    def process_formdata(self, valuelist):
        if valuelist and isinstance(valuelist[0], (int, float)) and not isinstance(valuelist[0], bool):
            valuelist = [str(valuelist[0])]
        super().process_formdata(valuelist)


class ApiForm(FlaskForm):

    class Meta:
        csrf = False

        def wrap_formdata(self, form, formdata):
            formdata = super().wrap_formdata(form, formdata)
            # JSON nulls behave as absent fields
            if request.is_json and isinstance(formdata, ImmutableMultiDict):
                return ImmutableMultiDict([(k, v) for k, v in formdata.items(multi=True) if v is not None])
            return formdata

    def validate(self, extra_validators=None):
        for field in self:
            if isinstance(field, StringField) and field.data is not None and not isinstance(field.data, str):
                # Length/Email expect str; keep them running on the text form
                field.data = str(field.data)
                field.process_errors.append('Must be text.')
        return super().validate(extra_validators)


def validate_form(form):
    """Validate a submitted form or raise ``ValidationError`` with per-field messages."""
    if not form.validate_on_submit():
        raise ValidationError('Validation failed.', fields=form.errors)
    return form
