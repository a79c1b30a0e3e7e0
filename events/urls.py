from django.urls import path
from . import views

urlpatterns = [
    # --- Public Pages ---
    path('', views.landing, name='landing'),

    # --- Authentication ---
    path('signin/', views.signin_view, name='signin'),
    path('signup/', views.signup_view, name='signup'),
    path('signout/', views.signout_view, name='signout'),
    path('forgot-password/', views.forgot_password_view, name='forgot_password'),
    path('reset-password/', views.reset_password_view, name='reset_password'),
    path('verify-email/', views.verify_email_view, name='verify_email'),

    # --- Dashboard & Profile ---
    path('dashboard/', views.dashboard_view, name='dashboard'),
    path('profile/', views.profile_view, name='profile'),

    # --- Event Browsing & Purchase ---
    path('events/', views.all_events_view, name='all_events'),
    path('events/<int:event_id>/', views.event_detail, name='event_detail'),
    path('events/<int:event_id>/checkout/', views.checkout_view, name='checkout'),
    # Payment gateway return URLs
    path('compra/exitosa/', views.payment_success_view, name='payment_success'),
    path('compra/fallida/', views.payment_failed_view, name='payment_failed'),

    # --- Tickets ---
    path('my-tickets/', views.my_tickets_view, name='my_tickets'),
    path('my-tickets/<int:event_id>/', views.ticket_detail_view, name='ticket_detail'),
    path('my-tickets/<int:event_id>/pdf/', views.ticket_pdf_view, name='ticket_pdf'),

    # --- Event Management (Organizers & Admins) ---
    path('create-event/', views.create_event_view, name='create_event'),
    path('organizer/my-events/', views.my_events_view, name='my_events'),
    path('organizer/events/<int:event_id>/edit/', views.edit_event_view, name='edit_event'),
    path('organizer/events/<int:event_id>/delete/', views.delete_event_view, name='delete_event'),
    path('organizer/events/<int:event_id>/manage/', views.manage_event_view, name='manage_event'),
    path('organizer/events/<int:event_id>/cancel/', views.cancel_event_view, name='cancel_event'),
    path('organizer/events/<int:event_id>/attendees.csv', views.export_attendees_view, name='export_attendees'),

    # --- Ticket Types (Admin & Staff) ---
    path('ticket-types/', views.ticket_types_view, name='ticket_types'),
    path('ticket-types/<int:ticket_type_id>/edit/', views.edit_ticket_type_view, name='edit_ticket_type'),
    path('ticket-types/<int:ticket_type_id>/delete/', views.delete_ticket_type_view, name='delete_ticket_type'),

    # --- User Management (Admin) ---
    path('admin/user-management/', views.user_management_view, name='user_management'),
    path('admin/users/<int:user_id>/edit/', views.edit_user_view, name='edit_user'),
    path('admin/users/<int:user_id>/role/', views.assign_role_view, name='assign_role'),
    path('admin/users/<int:user_id>/delete/', views.delete_user_view, name='delete_user'),
]
