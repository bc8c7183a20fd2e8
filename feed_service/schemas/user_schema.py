from marshmallow import EXCLUDE, pre_load, validate

from feed_service.extensions.extensions import ma


class SignupSchema(ma.Schema):
    class Meta:
        unknown = EXCLUDE

    email = ma.Email(required=True)
    name = ma.Str(required=True, validate=validate.Length(min=1, max=120))
    password = ma.Str(required=True, validate=validate.Length(min=5))

    @pre_load
    def normalize(self, data, **kwargs):
        data = {key: value for key, value in data.items() if value is not None}
        if isinstance(data.get("email"), str):
            data["email"] = data["email"].strip().lower()
        if isinstance(data.get("name"), str):
            data["name"] = data["name"].strip()
        return data
