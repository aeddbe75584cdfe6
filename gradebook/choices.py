from django.db import models
from django.utils.translation import gettext_lazy as _


class Term(models.TextChoices):
    MIDTERM = 'MIDTERM', _('Midterm')
    FINALS = 'FINALS', _('Finals')
