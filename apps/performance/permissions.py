"""Performance app permissions."""
from django.db.models import Q

from apps.core.permissions import ROLE_LINE_MANAGER, ROLE_MANAGER, is_admin


def visible_owner_filter(user, prefix='owner'):
    """
    ``Q`` limiting KPI records to what ``user`` may see: admins everything,
    managers their own plus direct and HOD reports, staff their own.
    """
    if is_admin(user):
        return Q()
    own = Q(**{prefix: user})
    if user.has_role(ROLE_LINE_MANAGER, ROLE_MANAGER):
        return own | Q(**{f'{prefix}__manager': user}) | Q(**{f'{prefix}__hod': user})
    return own
