from django import template

from .. import services

register = template.Library()


@register.filter
def cop(amount):
    """Colombian peso formatting: 50000 -> 50.000"""
    return services.format_cop(amount)


@register.filter
def short_date(value):
    return services.format_short_date(value)


@register.filter
def percent(value):
    return f'{float(value or 0):.0f}%'
