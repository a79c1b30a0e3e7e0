from django.shortcuts import render, redirect
from django.contrib import messages
from django.http import Http404, HttpResponse
from django.urls import reverse
from django.utils.http import url_has_allowed_host_and_scheme
from django.views.decorators.http import require_POST
import logging
from urllib.parse import urlencode

from .api import ApiError, GestifyClient
from .auth import anonymous_required, handles_expired_session, role_required, token_required
from .forms import (
    AskAIForm,
    CheckoutForm,
    EventFilterForm,
    EventForm,
    ForgotPasswordForm,
    ProfileForm,
    ResetPasswordForm,
    RoleForm,
    SignInForm,
    SignUpForm,
    TicketConfigFormSet,
    TicketTypeForm,
    UserEditForm,
    apply_api_errors,
)
from .navigation import ADMIN, ORGANIZER, STAFF, ROLE_CHOICES, has_access
from . import services
from .services import ALL_ROLES
from .tickets import QR_ROTATION_SECONDS, qr_data_uri, qr_payload, ticket_pdf

logger = logging.getLogger(__name__)

TICKET_STATUS_CHOICES = ('Confirmado', 'Planeado', 'Cancelado')


def _find_by_id(items, item_id):
    item = next((i for i in items if str(i.get('id')) == str(item_id)), None)
    if item is None:
        raise Http404
    return item


# --- Public Views ---

def landing(request):
    try:
        events = GestifyClient().list_events()
    except ApiError:
        events = []
    cards = [services.event_card(event) for event in events[:3]]
    return render(request, 'events/landing.html', {'cards': cards})


# --- Authentication Views ---

@anonymous_required
def signin_view(request):
    if request.method == 'POST':
        form = SignInForm(request.POST)
        if form.is_valid():
            client = GestifyClient()
            try:
                data = client.login(form.cleaned_data['email'], form.cleaned_data['password'])
            except ApiError as exc:
                messages.error(request, exc.message)
                return render(request, 'events/signin.html', {'form': form})
            token = (data or {}).get('token')
            user_id = (data or {}).get('user_id')
            if not token or not user_id:
                messages.error(request, 'Incomplete response from the server.')
                return render(request, 'events/signin.html', {'form': form})
            request.auth.login(token, {
                'id': str(user_id),
                'email': data.get('email'),
                'username': data.get('username') or '',
            })
            request.auth.refresh_profile()
            if not request.auth.is_authenticated:
                messages.error(request, 'Your profile could not be loaded. Please try again.')
                return render(request, 'events/signin.html', {'form': form})
            logger.info("User %s signed in", user_id)
            next_url = request.GET.get('next')
            if next_url and url_has_allowed_host_and_scheme(next_url, allowed_hosts={request.get_host()}):
                return redirect(next_url)
            return redirect('dashboard')
    else:
        form = SignInForm()
    return render(request, 'events/signin.html', {'form': form})


@anonymous_required
def signup_view(request):
    client = GestifyClient()
    try:
        document_types = client.document_types()
        departments = client.departments()
        cities = client.cities(department_id=request.POST.get('department') or None)
    except ApiError as exc:
        logger.error("Sign-up catalogs unavailable: %s", exc)
        document_types, departments, cities = [], [], []
        messages.error(request, 'The registration form could not be loaded completely.')
    catalogs = {'document_types': document_types, 'departments': departments, 'cities': cities}

    if request.method == 'POST':
        form = SignUpForm(request.POST, **catalogs)
        if form.is_valid():
            try:
                client.register(form.to_payload())
            except ApiError as exc:
                apply_api_errors(form, exc.payload or exc.message)
            else:
                messages.success(request, 'Registration successful! Check your email to activate your account.')
                return redirect('signin')
        else:
            messages.error(request, 'Please correct the errors below.')
    else:
        form = SignUpForm(**catalogs)
    return render(request, 'events/signup.html', {'form': form})


@anonymous_required
def forgot_password_view(request):
    if request.method == 'POST':
        form = ForgotPasswordForm(request.POST)
        if form.is_valid():
            try:
                GestifyClient().request_password_reset(form.cleaned_data['email'])
            except ApiError as exc:
                messages.error(request, exc.message)
            else:
                messages.success(request, 'A recovery link has been sent to your email.')
                return redirect('forgot_password')
    else:
        form = ForgotPasswordForm()
    return render(request, 'events/forgot_password.html', {'form': form})


@anonymous_required
def reset_password_view(request):
    token = request.GET.get('token')
    if request.method == 'POST':
        form = ResetPasswordForm(request.POST)
        if not token:
            messages.error(request, 'Invalid or missing token.')
        elif form.is_valid():
            try:
                GestifyClient().confirm_password_reset(
                    token, form.cleaned_data['password'], form.cleaned_data['password_confirm'])
            except ApiError as exc:
                messages.error(request, exc.message)
            else:
                messages.success(request, 'Your password has been reset. You can sign in now.')
                return redirect('signin')
    else:
        form = ResetPasswordForm()
    return render(request, 'events/reset_password.html', {'form': form, 'token': token})


def verify_email_view(request):
    token = request.GET.get('token')
    if not token:
        context = {'verified': False,
                   'message': 'Verification token not provided. Please check the link in your email.'}
        return render(request, 'events/verify_email.html', context)
    try:
        GestifyClient().verify_email(token)
    except ApiError as exc:
        if exc.status == 404:
            message = 'User not found. Please register again.'
        elif exc.status == 400:
            message = exc.message or 'The verification token is invalid or has expired.'
        else:
            message = 'The email could not be verified. Please try again later.'
        return render(request, 'events/verify_email.html', {'verified': False, 'message': message})
    context = {'verified': True, 'message': 'Email verified successfully! Your account is active.'}
    return render(request, 'events/verify_email.html', context)


@require_POST
def signout_view(request):
    request.auth.logout()
    messages.success(request, "You have been successfully signed out.")
    return redirect('landing')


# --- Dashboard & Profile ---

@token_required
def dashboard_view(request):
    client = request.auth.client()
    user = request.auth.user
    context = {'tickets_count': None, 'organized_count': None}
    try:
        context['tickets_count'] = len(client.my_tickets())
    except ApiError as exc:
        logger.warning("Dashboard tickets unavailable: %s", exc)
    if has_access([ADMIN, ORGANIZER], user):
        try:
            events = client.list_events() if request.auth.is_superuser else client.organizer_events()
            context['organized_count'] = len(events)
        except ApiError as exc:
            logger.warning("Dashboard events unavailable: %s", exc)
    return render(request, 'events/dashboard.html', context)


@token_required
def profile_view(request):
    user = request.auth.user or {}
    if request.method == 'POST':
        form = ProfileForm(request.POST)
        if form.is_valid():
            try:
                request.auth.client().update_profile(form.cleaned_data)
            except ApiError as exc:
                messages.error(request, exc.message)
            else:
                request.auth.refresh_profile()
                messages.success(request, 'Profile updated successfully.')
                return redirect('profile')
    else:
        form = ProfileForm(initial={'email': user.get('email', ''), 'phone': user.get('phone', '')})
    return render(request, 'events/profile.html', {'form': form, 'profile': user})


# --- Event Browsing & Purchase ---

@token_required
def all_events_view(request):
    try:
        events = request.auth.client().list_events()
    except ApiError as exc:
        messages.error(request, exc.message)
        events = []
    form = EventFilterForm(request.GET or None, city_options=services.city_options(events))
    filters = form.filters()
    context = {
        'cards': [services.event_card(event) for event in services.filter_events(events, filters)],
        'form': form,
        'filters_active': services.filters_active(filters),
    }
    return render(request, 'events/all_events.html', context)


@handles_expired_session
def event_detail(request, event_id):
    client = request.auth.client()
    try:
        event = client.get_event(event_id)
        availability = client.event_availability(event_id)
    except ApiError as exc:
        logger.error("Event %s could not be loaded: %s", event_id, exc)
        messages.error(request, 'The event information could not be loaded.')
        return redirect('all_events' if request.auth.is_authenticated else 'landing')

    answer = None
    ask_form = AskAIForm()
    if request.method == 'POST':
        if not request.auth.is_authenticated:
            return redirect(f"{reverse('signin')}?{urlencode({'next': request.path})}")
        ask_form = AskAIForm(request.POST)
        if ask_form.is_valid():
            try:
                answer = (client.ask_ai(event_id, ask_form.cleaned_data['question']) or {}).get('answer')
            except ApiError:
                messages.error(request, 'Sorry, your question could not be processed right now.')

    selected = services.find_ticket(availability, request.GET.get('ticket')) \
        or services.first_available_ticket(availability)
    try:
        quantity = max(1, int(request.GET.get('quantity', 1)))
    except ValueError:
        quantity = 1
    button_text, button_disabled = services.purchase_state(event, selected)
    city, region = services.location_labels(event)
    context = {
        'event': event,
        'availability': [dict(t, remaining=services.remaining(t), name=services.ticket_type_name(t))
                         for t in availability],
        'selected': selected,
        'selected_remaining': services.remaining(selected) if selected else 0,
        'quantity': quantity,
        'totals': services.checkout_totals(selected, quantity),
        'button_text': button_text,
        'button_disabled': button_disabled,
        'city': city,
        'region': region,
        'image': services.event_image(event),
        'ask_form': ask_form,
        'answer': answer,
    }
    return render(request, 'events/event_detail.html', context)


@require_POST
@handles_expired_session
def checkout_view(request, event_id):
    if not request.auth.is_authenticated:
        next_url = reverse('event_detail', args=[event_id])
        return redirect(f"{reverse('signin')}?{urlencode({'next': next_url})}")
    client = request.auth.client()
    try:
        event = client.get_event(event_id)
        availability = client.event_availability(event_id)
    except ApiError as exc:
        messages.error(request, exc.message)
        return redirect('event_detail', event_id=event_id)

    form = CheckoutForm(request.POST, availability=availability)
    if not form.is_valid():
        for errors in form.errors.values():
            messages.error(request, ' '.join(errors))
        return redirect('event_detail', event_id=event_id)

    ticket = form.selected_ticket()
    label, disabled = services.purchase_state(event, ticket)
    if disabled:
        messages.error(request, f'{label}.')
        return redirect('event_detail', event_id=event_id)

    try:
        result = client.purchase(event_id, ticket['id'], form.cleaned_data['quantity']) or {}
    except ApiError as exc:
        messages.error(request, exc.message)
        return redirect('event_detail', event_id=event_id)
    logger.info("Checkout started for event %s, ticket type %s", event_id, ticket['id'])
    if result.get('checkout_url'):
        return redirect(result['checkout_url'])
    return redirect('payment_success')


@token_required
def payment_success_view(request):
    return render(request, 'events/payment_result.html', {'success': True})


@token_required
def payment_failed_view(request):
    return render(request, 'events/payment_result.html', {'success': False, 'error': request.GET.get('error')})


# --- Tickets ---

@token_required
def my_tickets_view(request):
    status = request.GET.get('status', '')
    search = request.GET.get('q', '').strip()
    try:
        tickets = request.auth.client().my_tickets()
    except ApiError as exc:
        messages.error(request, exc.message)
        tickets = []
    context = {
        'tickets': services.filter_tickets(tickets, status, search),
        'status': status,
        'q': search,
        'status_choices': TICKET_STATUS_CHOICES,
    }
    return render(request, 'events/my_tickets.html', context)


@token_required
def ticket_detail_view(request, event_id):
    try:
        event = request.auth.client().get_event(event_id)
    except ApiError as exc:
        logger.error("Ticket detail for event %s unavailable: %s", event_id, exc)
        messages.error(request, 'The ticket details could not be loaded.')
        return redirect('my_tickets')
    city, region = services.location_labels(event)
    context = {
        'event': event,
        'city': city,
        'region': region,
        'qr_code': qr_data_uri(qr_payload(event, request.auth.user)),
        'rotation_seconds': QR_ROTATION_SECONDS,
    }
    return render(request, 'events/ticket_detail.html', context)


@token_required
def ticket_pdf_view(request, event_id):
    try:
        event = request.auth.client().get_event(event_id)
    except ApiError as exc:
        messages.error(request, exc.message)
        return redirect('my_tickets')
    pdf = ticket_pdf(event, request.auth.user)
    if pdf is None:
        messages.error(request, 'The ticket PDF could not be generated.')
        return redirect('ticket_detail', event_id=event_id)
    response = HttpResponse(pdf, content_type='application/pdf')
    response['Content-Disposition'] = f'attachment; filename="ticket-{event_id}.pdf"'
    return response


# --- Event Management Views (Organizers & Admins) ---

def _event_form_context(event_form, formset, event=None):
    context = {'form': event_form, 'formset': formset, 'event': event}
    if event:
        context['unassigned_capacity'] = services.remaining_capacity(
            event.get('max_capacity'), services.normalize_ticket_config(event))
    return context


def _event_catalogs(client):
    return client.ticket_types(), client.cities()


def _validate_event_forms(event_form, formset):
    event_valid = event_form.is_valid()
    if event_valid:
        formset.max_capacity = event_form.cleaned_data.get('max_capacity')
    return formset.is_valid() and event_valid


@role_required(ADMIN, ORGANIZER)
def create_event_view(request):
    client = request.auth.client()
    try:
        ticket_types, cities = _event_catalogs(client)
    except ApiError as exc:
        messages.error(request, exc.message)
        return redirect('my_events')

    if request.method == 'POST':
        form = EventForm(request.POST, request.FILES, cities=cities)
        formset = TicketConfigFormSet(request.POST, prefix='tickets', form_kwargs={'ticket_types': ticket_types})
        if _validate_event_forms(form, formset):
            payload = form.to_payload()
            payload['ticket_type'] = services.dump_ticket_config(formset.tickets())
            try:
                event = client.create_event(payload, files=form.to_files())
            except ApiError as exc:
                messages.error(request, exc.message)
            else:
                logger.info("Event %s created", (event or {}).get('id'))
                messages.success(request, 'Event created successfully!')
                return redirect('my_events')
    else:
        form = EventForm(cities=cities)
        formset = TicketConfigFormSet(prefix='tickets', form_kwargs={'ticket_types': ticket_types})
    return render(request, 'events/event_form.html', _event_form_context(form, formset))


@role_required(ADMIN, ORGANIZER)
def edit_event_view(request, event_id):
    client = request.auth.client()
    try:
        event = client.get_event(event_id)
        ticket_types, cities = _event_catalogs(client)
    except ApiError as exc:
        messages.error(request, exc.message)
        return redirect('my_events')

    if request.method == 'POST':
        form = EventForm(request.POST, request.FILES, cities=cities)
        formset = TicketConfigFormSet(request.POST, prefix='tickets', form_kwargs={'ticket_types': ticket_types})
        if _validate_event_forms(form, formset):
            payload = form.to_payload()
            payload['ticket_type_json'] = services.dump_ticket_config(formset.tickets())
            files = form.to_files()
            if files is None and form.cleaned_data.get('clear_image'):
                payload['image'] = ''
            try:
                client.update_event(event_id, payload, files=files)
            except ApiError as exc:
                messages.error(request, exc.message)
            else:
                messages.success(request, 'Event updated successfully!')
                return redirect('my_events')
    else:
        form = EventForm(initial=EventForm.initial_from_event(event), cities=cities)
        formset = TicketConfigFormSet(
            prefix='tickets',
            initial=services.normalize_ticket_config(event),
            form_kwargs={'ticket_types': ticket_types},
        )
    return render(request, 'events/event_form.html', _event_form_context(form, formset, event))


@require_POST
@role_required(ADMIN, ORGANIZER)
def delete_event_view(request, event_id):
    try:
        request.auth.client().delete_event(event_id)
    except ApiError as exc:
        messages.error(request, exc.message)
        return redirect('edit_event', event_id=event_id)
    messages.success(request, 'Event deleted successfully!')
    return redirect('my_events')


@role_required(ADMIN, ORGANIZER)
def my_events_view(request):
    client = request.auth.client()
    is_admin = request.auth.is_superuser
    try:
        events = client.list_events() if is_admin else client.organizer_events()
    except ApiError as exc:
        messages.error(request, exc.message)
        events = []
    rows = []
    for event in events:
        try:
            availability = client.event_availability(event['id'])
        except ApiError as exc:
            logger.warning("Availability for event %s unavailable: %s", event['id'], exc)
            availability = []
        rows.append({
            'event': event,
            'status_label': services.status_label(event.get('status')),
            'capacity': event.get('max_capacity') or 0,
            **services.sales_progress(event, availability),
        })
    context = {
        'rows': rows,
        'is_admin': is_admin,
        'page_title': 'Event management' if is_admin else 'My events',
    }
    return render(request, 'events/my_events.html', context)


@role_required(ADMIN, ORGANIZER)
def manage_event_view(request, event_id):
    client = request.auth.client()
    tab = request.GET.get('tab', 'summary')
    search = request.GET.get('q', '').strip()
    context = {'tab': tab, 'q': search}
    try:
        event = client.get_event(event_id)
        context['event'] = event
        if tab == 'attendees':
            attendees = client.event_attendees(event_id)
            context['attendees'] = [
                dict(attendee, ticket_type_name=services.ticket_type_name(attendee))
                for attendee in services.search_attendees(attendees, search)
            ]
        else:
            availability = client.event_availability(event_id)
            chart = services.capacity_chart(availability)
            context.update(
                kpis=services.event_kpis(availability),
                chart=chart,
                chart_rows=list(zip(chart['categories'], chart['sold'], chart['available'])),
                status_label=services.status_label(event.get('status')),
            )
    except ApiError as exc:
        messages.error(request, exc.message)
        return redirect('my_events')
    return render(request, 'events/manage_event.html', context)


@require_POST
@role_required(ADMIN, ORGANIZER)
def cancel_event_view(request, event_id):
    try:
        request.auth.client().cancel_event(event_id)
    except ApiError as exc:
        messages.error(request, exc.message)
    else:
        logger.info("Event %s cancelled", event_id)
        messages.success(request, 'Event cancelled successfully!')
    return redirect('manage_event', event_id=event_id)


@role_required(ADMIN, ORGANIZER)
def export_attendees_view(request, event_id):
    client = request.auth.client()
    try:
        event = client.get_event(event_id)
        attendees = client.event_attendees(event_id)
    except ApiError as exc:
        messages.error(request, exc.message)
        return redirect('manage_event', event_id=event_id)
    if not attendees:
        messages.warning(request, 'There are no attendees to export.')
        return redirect(f"{reverse('manage_event', args=[event_id])}?tab=attendees")
    response = HttpResponse(services.attendees_csv(attendees), content_type='text/csv; charset=utf-8')
    response['Content-Disposition'] = f'attachment; filename="{services.attendees_filename(event)}"'
    return response


# --- Ticket Types (Admin & Staff) ---

@role_required(ADMIN, STAFF)
def ticket_types_view(request):
    client = request.auth.client()
    if request.method == 'POST':
        form = TicketTypeForm(request.POST)
        if form.is_valid():
            try:
                client.create_ticket_type(form.cleaned_data)
            except ApiError as exc:
                apply_api_errors(form, exc.payload or exc.message)
            else:
                messages.success(request, 'Ticket type created.')
                return redirect('ticket_types')
    else:
        form = TicketTypeForm()
    search = request.GET.get('q', '').strip()
    try:
        ticket_types = client.ticket_types()
    except ApiError as exc:
        messages.error(request, exc.message)
        ticket_types = []
    context = {'ticket_types': services.filter_ticket_types(ticket_types, search), 'q': search, 'form': form}
    return render(request, 'events/ticket_types.html', context)


@role_required(ADMIN, STAFF)
def edit_ticket_type_view(request, ticket_type_id):
    client = request.auth.client()
    try:
        ticket_type = _find_by_id(client.ticket_types(), ticket_type_id)
    except ApiError as exc:
        messages.error(request, exc.message)
        return redirect('ticket_types')
    if request.method == 'POST':
        form = TicketTypeForm(request.POST)
        if form.is_valid():
            try:
                client.update_ticket_type(ticket_type_id, form.cleaned_data)
            except ApiError as exc:
                apply_api_errors(form, exc.payload or exc.message)
            else:
                messages.success(request, 'Ticket type updated.')
                return redirect('ticket_types')
    else:
        form = TicketTypeForm(initial={
            'ticket_name': ticket_type.get('ticket_name'),
            'description': ticket_type.get('description'),
        })
    return render(request, 'events/ticket_type_form.html', {'form': form, 'ticket_type': ticket_type})


@require_POST
@role_required(ADMIN, STAFF)
def delete_ticket_type_view(request, ticket_type_id):
    try:
        request.auth.client().delete_ticket_type(ticket_type_id)
    except ApiError as exc:
        messages.error(request, exc.message)
    else:
        messages.success(request, 'Ticket type deleted.')
    return redirect('ticket_types')


# --- User Management (Admin) ---

@role_required(ADMIN)
def user_management_view(request):
    search = request.GET.get('q', '').strip()
    role = request.GET.get('role', ALL_ROLES)
    try:
        users = request.auth.client().list_users()
    except ApiError as exc:
        messages.error(request, exc.message)
        users = []
    rows = [dict(user, primary_role=services.primary_role(user)) for user in services.filter_users(users, search, role)]
    context = {'users': rows, 'q': search, 'role': role, 'role_choices': ROLE_CHOICES, 'all_roles': ALL_ROLES}
    return render(request, 'events/user_management.html', context)


@role_required(ADMIN)
def edit_user_view(request, user_id):
    client = request.auth.client()
    try:
        user = _find_by_id(client.list_users(), user_id)
    except ApiError as exc:
        messages.error(request, exc.message)
        return redirect('user_management')
    if request.method == 'POST':
        form = UserEditForm(request.POST)
        if form.is_valid():
            try:
                client.update_user(user_id, form.cleaned_data)
            except ApiError as exc:
                apply_api_errors(form, exc.payload or exc.message)
            else:
                messages.success(request, 'User updated.')
                return redirect('user_management')
    else:
        form = UserEditForm(initial={field: user.get(field) for field in UserEditForm.base_fields})
    context = {
        'form': form,
        'managed_user': user,
        'role_form': RoleForm(initial={'role': services.primary_role(user)}),
    }
    return render(request, 'events/user_form.html', context)


@require_POST
@role_required(ADMIN)
def assign_role_view(request, user_id):
    form = RoleForm(request.POST)
    if not form.is_valid():
        messages.error(request, 'Select a valid role.')
        return redirect('edit_user', user_id=user_id)
    try:
        request.auth.client().assign_role(user_id, form.cleaned_data['role'])
    except ApiError as exc:
        messages.error(request, exc.message)
    else:
        logger.info("Role %s assigned to user %s", form.cleaned_data['role'], user_id)
        messages.success(request, 'Role assigned.')
    return redirect('user_management')


@require_POST
@role_required(ADMIN)
def delete_user_view(request, user_id):
    try:
        request.auth.client().delete_user(user_id)
    except ApiError as exc:
        messages.error(request, exc.message)
    else:
        messages.success(request, 'User deleted.')
    return redirect('user_management')
