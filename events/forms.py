from django import forms
from django.utils import timezone
import re

from .navigation import ROLE_CHOICES
from .services import (
    ALL_CITIES, ALL_GENRES, CATEGORY_CHOICES, STATUS_CHOICES, configured_capacity, remaining, ticket_type_name,
)

COUNTRY_CHOICES = (
    ('Colombia', 'Colombia'),
    ('Otro', 'Other (international)'),
)

DATETIME_LOCAL = '%Y-%m-%dT%H:%M'


def apply_api_errors(form, payload):
    """Attaches a DRF error payload to the form, field by field where the field exists."""
    if not isinstance(payload, dict):
        form.add_error(None, str(payload) if payload else 'The request could not be completed.')
        return
    for key, errors in payload.items():
        if not isinstance(errors, list):
            errors = [errors]
        messages = [str(e) for e in errors]
        form.add_error(key if key in form.fields else None, messages)


def catalog_choices(items, label_key='name', blank=None):
    choices = [(str(item['id']), item.get(label_key, '')) for item in items or []]
    if blank is not None:
        choices.insert(0, ('', blank))
    return choices


def city_choices(cities):
    """Cities grouped under their department, for a single select."""
    groups = {}
    for city in cities or []:
        department = (city.get('department') or {}).get('name', '')
        groups.setdefault(department, []).append((str(city['id']), city.get('name', '')))
    return [('', 'Select a city')] + sorted(groups.items())


class SignInForm(forms.Form):
    email = forms.EmailField(widget=forms.EmailInput(attrs={'class': 'form-input', 'placeholder': 'info@gmail.com'}))
    password = forms.CharField(widget=forms.PasswordInput(attrs={'class': 'form-input'}))


class SignUpForm(forms.Form):
    username = forms.CharField(max_length=150, widget=forms.TextInput(attrs={'class': 'form-input'}))
    first_name = forms.CharField(max_length=150, widget=forms.TextInput(attrs={'class': 'form-input'}))
    last_name = forms.CharField(max_length=150, widget=forms.TextInput(attrs={'class': 'form-input'}))
    email = forms.EmailField(required=False, widget=forms.EmailInput(attrs={'class': 'form-input'}))
    phone = forms.CharField(max_length=20, required=False, widget=forms.TextInput(attrs={'class': 'form-input'}))
    birth_date = forms.DateField(required=False,
                                 widget=forms.DateInput(attrs={'class': 'form-input', 'type': 'date'}))
    document_type = forms.ChoiceField(choices=(), widget=forms.Select(attrs={'class': 'form-select'}))
    document = forms.CharField(max_length=20, widget=forms.TextInput(attrs={'class': 'form-input'}))
    department = forms.ChoiceField(choices=(), widget=forms.Select(attrs={'class': 'form-select'}))
    city = forms.ChoiceField(choices=(), widget=forms.Select(attrs={'class': 'form-select'}))
    password = forms.CharField(widget=forms.PasswordInput(attrs={'class': 'form-input'}))
    password_confirm = forms.CharField(widget=forms.PasswordInput(attrs={'class': 'form-input'}))
    terms = forms.BooleanField(
        required=True,
        error_messages={'required': 'You must accept the Terms and Conditions.'},
    )

    def __init__(self, *args, document_types=None, departments=None, cities=None, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields['document_type'].choices = catalog_choices(document_types, blank='Select a document type')
        self.fields['department'].choices = catalog_choices(departments, blank='Select a department')
        self.fields['city'].choices = catalog_choices(cities, blank='Select a city')

    def clean_username(self):
        username = self.cleaned_data.get('username')
        if not re.match(r'^[a-zA-Z0-9_]+$', username):
            raise forms.ValidationError("Username can only contain letters, numbers, and underscores.")
        return username

    def _clean_name(self, field):
        value = self.cleaned_data.get(field)
        if not re.match(r'^[a-zA-ZáéíóúÁÉÍÓÚñÑ\s]+$', value):
            raise forms.ValidationError("Names can only contain letters and spaces.")
        return value

    def clean_first_name(self):
        return self._clean_name('first_name')

    def clean_last_name(self):
        return self._clean_name('last_name')

    def _clean_digits(self, field):
        value = self.cleaned_data.get(field)
        if not value.isdigit():
            raise forms.ValidationError("Only digits are allowed.")
        return value

    def clean_phone(self):
        if not self.cleaned_data.get('phone'):
            return ''
        return self._clean_digits('phone')

    def clean_document(self):
        return self._clean_digits('document')

    def clean_birth_date(self):
        birth_date = self.cleaned_data.get('birth_date')
        if birth_date is None:
            return None
        today = timezone.localdate()
        try:
            adult_cutoff = today.replace(year=today.year - 18)
        except ValueError:
            # Feb 29 on a non-leap target year
            adult_cutoff = today.replace(year=today.year - 18, day=28)
        if birth_date > adult_cutoff:
            raise forms.ValidationError("You must be at least 18 years old.")
        return birth_date

    def clean(self):
        cleaned_data = super().clean()
        password = cleaned_data.get('password')
        if password and password != cleaned_data.get('password_confirm'):
            self.add_error('password_confirm', "Passwords do not match.")
        return cleaned_data

    def to_payload(self):
        data = {key: value for key, value in self.cleaned_data.items() if key != 'terms'}
        data['birth_date'] = data['birth_date'].isoformat() if data['birth_date'] else ''
        data.update(country='Colombia', city_text='', department_text='')
        return data


class ForgotPasswordForm(forms.Form):
    email = forms.EmailField(widget=forms.EmailInput(attrs={'class': 'form-input'}))


class ResetPasswordForm(forms.Form):
    password = forms.CharField(widget=forms.PasswordInput(attrs={'class': 'form-input'}))
    password_confirm = forms.CharField(widget=forms.PasswordInput(attrs={'class': 'form-input'}))

    def clean(self):
        cleaned_data = super().clean()
        if cleaned_data.get('password') != cleaned_data.get('password_confirm'):
            raise forms.ValidationError("Passwords do not match.")
        return cleaned_data


class EventForm(forms.Form):
    event_name = forms.CharField(max_length=200, widget=forms.TextInput(attrs={'class': 'form-input'}))
    description = forms.CharField(widget=forms.Textarea(attrs={'class': 'form-input', 'rows': 5}))
    organizer = forms.CharField(max_length=200, widget=forms.TextInput(attrs={'class': 'form-input'}))
    category = forms.ChoiceField(choices=(('', 'Select a category'),) + CATEGORY_CHOICES,
                                 widget=forms.Select(attrs={'class': 'form-select'}))
    image = forms.ImageField(required=False)
    clear_image = forms.BooleanField(required=False, label='Remove current image')
    date = forms.DateField(widget=forms.DateInput(attrs={'class': 'form-input', 'type': 'date'}))
    start_datetime = forms.DateTimeField(
        widget=forms.DateTimeInput(attrs={'class': 'form-input', 'type': 'datetime-local'}, format=DATETIME_LOCAL))
    end_datetime = forms.DateTimeField(
        widget=forms.DateTimeInput(attrs={'class': 'form-input', 'type': 'datetime-local'}, format=DATETIME_LOCAL))
    sales_open_datetime = forms.DateTimeField(
        required=False,
        widget=forms.DateTimeInput(attrs={'class': 'form-input', 'type': 'datetime-local'}, format=DATETIME_LOCAL))
    country = forms.ChoiceField(choices=COUNTRY_CHOICES, initial='Colombia',
                                widget=forms.Select(attrs={'class': 'form-select'}))
    status = forms.ChoiceField(choices=STATUS_CHOICES, initial='programado',
                               widget=forms.Select(attrs={'class': 'form-select'}))
    location = forms.ChoiceField(choices=(), required=False, widget=forms.Select(attrs={'class': 'form-select'}))
    city_text = forms.CharField(max_length=100, required=False, widget=forms.TextInput(attrs={'class': 'form-input'}))
    department_text = forms.CharField(max_length=100, required=False,
                                      widget=forms.TextInput(attrs={'class': 'form-input'}))
    min_age = forms.IntegerField(min_value=0, required=False,
                                 widget=forms.NumberInput(attrs={'class': 'form-input', 'placeholder': 'e.g., 18'}))
    max_capacity = forms.IntegerField(min_value=1, required=False,
                                      widget=forms.NumberInput(attrs={'class': 'form-input', 'placeholder': 'e.g., 500'}))

    def __init__(self, *args, cities=None, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields['location'].choices = city_choices(cities)

    @staticmethod
    def initial_from_event(event):
        initial = {key: event.get(key) for key in (
            'event_name', 'description', 'organizer', 'category', 'country', 'status',
            'city_text', 'department_text', 'min_age', 'max_capacity',
        )}
        initial['date'] = (event.get('date') or '')[:10]
        initial['start_datetime'] = (event.get('start_datetime') or '')[:16]
        initial['end_datetime'] = (event.get('end_datetime') or '')[:16]
        initial['sales_open_datetime'] = (event.get('sales_open_datetime') or '')[:16]
        if event.get('location'):
            initial['location'] = str(event['location'])
        return initial

    def clean_description(self):
        description = self.cleaned_data.get('description')
        if len(description.strip()) < 20:
            raise forms.ValidationError("The description must be at least 20 characters long.")
        return description

    def clean(self):
        cleaned_data = super().clean()
        start, end = cleaned_data.get('start_datetime'), cleaned_data.get('end_datetime')
        if start and end and start >= end:
            self.add_error('end_datetime', 'End time must be after the start time.')
        if cleaned_data.get('country') == 'Colombia':
            if not cleaned_data.get('location'):
                self.add_error('location', 'A city is required for events in Colombia.')
        else:
            if not cleaned_data.get('city_text') or not cleaned_data.get('department_text'):
                raise forms.ValidationError(
                    'For events outside Colombia, type the city and the department.')
        return cleaned_data

    def to_payload(self):
        data = self.cleaned_data
        payload = {
            'event_name': data['event_name'],
            'description': data['description'],
            'organizer': data['organizer'],
            'category': data['category'],
            'date': data['date'].isoformat(),
            'start_datetime': data['start_datetime'].isoformat(),
            'end_datetime': data['end_datetime'].isoformat(),
            'country': data['country'],
            'status': data['status'],
        }
        if data.get('min_age') is not None:
            payload['min_age'] = str(data['min_age'])
        if data.get('max_capacity'):
            payload['max_capacity'] = str(data['max_capacity'])
        if data.get('sales_open_datetime'):
            payload['sales_open_datetime'] = data['sales_open_datetime'].isoformat()
        if data['country'] == 'Colombia':
            payload['location'] = data['location']
        else:
            payload['city_text'] = data['city_text']
            payload['department_text'] = data['department_text']
        return payload

    def to_files(self):
        image = self.cleaned_data.get('image')
        if not image:
            return None
        return {'image': (image.name, image.read(), image.content_type)}


class TicketConfigForm(forms.Form):
    ticket_type_id = forms.TypedChoiceField(choices=(), coerce=int,
                                            widget=forms.Select(attrs={'class': 'form-select'}))
    price = forms.DecimalField(min_value=0, max_digits=12, decimal_places=2,
                               widget=forms.NumberInput(attrs={'class': 'form-input', 'placeholder': 'e.g., 50000'}))
    maximun_capacity = forms.IntegerField(min_value=1,
                                          widget=forms.NumberInput(attrs={'class': 'form-input', 'placeholder': 'e.g., 100'}))

    def __init__(self, *args, ticket_types=None, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields['ticket_type_id'].choices = catalog_choices(
            ticket_types, label_key='ticket_name', blank='Select a type')


class BaseTicketConfigFormSet(forms.BaseFormSet):
    """Ticket rows of an event; the view sets max_capacity from the validated event form."""

    max_capacity = None

    def active_forms(self):
        return [
            form for form in self.forms
            if form.cleaned_data and not (self.can_delete and self._should_delete_form(form))
        ]

    def clean(self):
        if any(self.errors):
            return
        seen = set()
        for form in self.active_forms():
            ticket_type_id = form.cleaned_data['ticket_type_id']
            if ticket_type_id in seen:
                raise forms.ValidationError('That ticket type has already been added.')
            seen.add(ticket_type_id)
        if not seen:
            raise forms.ValidationError('You must configure at least one ticket type.')
        total = configured_capacity(self.tickets())
        if self.max_capacity and total > self.max_capacity:
            raise forms.ValidationError(
                f'The event capacity is {self.max_capacity}. '
                f'The configured tickets add up to {total}, which exceeds the limit.')

    def tickets(self):
        return [
            {
                'ticket_type_id': form.cleaned_data['ticket_type_id'],
                'price': float(form.cleaned_data['price']),
                'maximun_capacity': form.cleaned_data['maximun_capacity'],
            }
            for form in self.active_forms()
        ]


TicketConfigFormSet = forms.formset_factory(
    TicketConfigForm, formset=BaseTicketConfigFormSet, extra=1, can_delete=True,
)


class TicketTypeForm(forms.Form):
    ticket_name = forms.CharField(max_length=100, widget=forms.TextInput(attrs={'class': 'form-input'}))
    description = forms.CharField(required=False, widget=forms.Textarea(attrs={'class': 'form-input', 'rows': 3}))


class ProfileForm(forms.Form):
    email = forms.EmailField(widget=forms.EmailInput(attrs={'class': 'form-input'}))
    phone = forms.CharField(max_length=20, required=False, widget=forms.TextInput(attrs={'class': 'form-input'}))


class UserEditForm(forms.Form):
    first_name = forms.CharField(max_length=150, required=False, widget=forms.TextInput(attrs={'class': 'form-input'}))
    last_name = forms.CharField(max_length=150, required=False, widget=forms.TextInput(attrs={'class': 'form-input'}))
    email = forms.EmailField(widget=forms.EmailInput(attrs={'class': 'form-input'}))
    phone = forms.CharField(max_length=20, required=False, widget=forms.TextInput(attrs={'class': 'form-input'}))
    document = forms.CharField(max_length=20, required=False, widget=forms.TextInput(attrs={'class': 'form-input'}))
    country = forms.CharField(max_length=100, required=False, widget=forms.TextInput(attrs={'class': 'form-input'}))
    is_staff = forms.BooleanField(required=False)
    is_superuser = forms.BooleanField(required=False)
    is_active = forms.BooleanField(required=False)


class RoleForm(forms.Form):
    role = forms.ChoiceField(choices=ROLE_CHOICES, widget=forms.Select(attrs={'class': 'form-select'}))


class EventFilterForm(forms.Form):
    search = forms.CharField(required=False, widget=forms.TextInput(
        attrs={'class': 'form-input', 'type': 'search', 'placeholder': 'Search events'}))
    date_from = forms.DateField(required=False, widget=forms.DateInput(attrs={'class': 'form-input', 'type': 'date'}))
    date_to = forms.DateField(required=False, widget=forms.DateInput(attrs={'class': 'form-input', 'type': 'date'}))
    city = forms.ChoiceField(required=False, widget=forms.Select(attrs={'class': 'form-select'}))
    genre = forms.ChoiceField(required=False, choices=((ALL_GENRES, 'All categories'),) + CATEGORY_CHOICES,
                              widget=forms.Select(attrs={'class': 'form-select'}))
    min_price = forms.DecimalField(required=False, min_value=0,
                                   widget=forms.NumberInput(attrs={'class': 'form-input', 'placeholder': 'Min price'}))
    max_price = forms.DecimalField(required=False, min_value=0,
                                   widget=forms.NumberInput(attrs={'class': 'form-input', 'placeholder': 'Max price'}))

    def __init__(self, *args, city_options=None, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields['city'].choices = [(ALL_CITIES, 'All cities')] + list(city_options or [])

    def clean(self):
        cleaned_data = super().clean()
        date_from, date_to = cleaned_data.get('date_from'), cleaned_data.get('date_to')
        if date_from and date_to and date_from > date_to:
            self.add_error('date_to', 'The end date cannot be before the start date.')
        return cleaned_data

    def filters(self):
        """The cleaned filters, or none at all while the form is unbound or invalid."""
        if not self.is_bound or not self.is_valid():
            return {}
        return self.cleaned_data


class CheckoutForm(forms.Form):
    ticket = forms.ChoiceField(choices=(), widget=forms.RadioSelect)
    quantity = forms.IntegerField(min_value=1, initial=1,
                                  widget=forms.NumberInput(attrs={'class': 'form-input'}))

    def __init__(self, *args, availability=None, **kwargs):
        super().__init__(*args, **kwargs)
        self.availability = availability or []
        self.fields['ticket'].choices = [
            (str(t['id']), ticket_type_name(t)) for t in self.availability if remaining(t) > 0
        ]

    def selected_ticket(self):
        ticket_id = self.cleaned_data.get('ticket') if hasattr(self, 'cleaned_data') else None
        return next((t for t in self.availability if str(t['id']) == ticket_id), None)

    def clean(self):
        cleaned_data = super().clean()
        ticket = self.selected_ticket()
        quantity = cleaned_data.get('quantity')
        if ticket and quantity and quantity > remaining(ticket):
            self.add_error('quantity', f'Only {remaining(ticket)} tickets of this type are left.')
        return cleaned_data


class AskAIForm(forms.Form):
    question = forms.CharField(
        max_length=500,
        widget=forms.TextInput(attrs={'class': 'form-input', 'placeholder': 'Ask something about this event...'}),
    )
