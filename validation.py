"""Form validation for new sales entries."""
import re
from datetime import datetime

DATE_RE = re.compile(r'^\d{4}-\d{2}-\d{2}$')
COUNT_RE = re.compile(r'^\d{1,9}$')
MONEY_RE = re.compile(r'^\d{1,9}(\.\d{1,2})?$')

COUNT_FIELDS = ('voiceLines', 'bts', 'iot', 'hsi', 'protection')
MONEY_FIELDS = ('accessories', 'mrc')
PLAN_NAME_MAX = 100

LABELS = {
    'date': 'Date',
    'voiceLines': 'Voice Lines',
    'bts': 'BTS',
    'iot': 'IoT',
    'hsi': 'HSI',
    'accessories': 'Accessories',
    'protection': 'Protection',
    'planName': 'Plan Name',
    'mrc': 'MRC',
}


class EntryValidationError(ValueError):
    """Carries one message per rejected field."""

    def __init__(self, errors):
        super().__init__('; '.join(f"{LABELS.get(k, k)}: {v}" for k, v in errors.items()))
        self.errors = errors


def validate_entry(form):
    """Return cleaned string values for a new entry or raise EntryValidationError."""
    errors = {}
    cleaned = {}

    raw_date = (form.get('date') or '').strip()
    if not raw_date:
        errors['date'] = 'Date is required'
    elif not DATE_RE.match(raw_date):
        errors['date'] = 'Enter a valid date (YYYY-MM-DD)'
    else:
        try:
            datetime.strptime(raw_date, '%Y-%m-%d')
            cleaned['date'] = raw_date
        except ValueError:
            errors['date'] = 'Enter a valid date (YYYY-MM-DD)'

    for field in COUNT_FIELDS:
        value = (form.get(field) or '').strip()
        if COUNT_RE.match(value):
            cleaned[field] = str(int(value))
        else:
            errors[field] = 'Must be a whole number'

    for field in MONEY_FIELDS:
        value = (form.get(field) or '').strip()
        if MONEY_RE.match(value):
            cleaned[field] = value
        else:
            errors[field] = 'Must be an amount like 12.50'

    plan_name = (form.get('planName') or '').strip()
    if not plan_name:
        errors['planName'] = 'Plan name is required'
    elif len(plan_name) > PLAN_NAME_MAX:
        errors['planName'] = f'Keep it under {PLAN_NAME_MAX} characters'
    else:
        cleaned['planName'] = plan_name

    if errors:
        raise EntryValidationError(errors)
    return cleaned
