import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models

RATING_CHOICES = [(1, 1), (2, 2), (3, 3), (4, 4), (5, 5)]


def rating_validators():
    return [
        django.core.validators.MinValueValidator(1),
        django.core.validators.MaxValueValidator(5),
    ]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Risk',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('deleted_at', models.DateTimeField(blank=True, db_index=True, null=True)),
                ('title', models.CharField(max_length=255)),
                ('description', models.TextField()),
                ('category', models.CharField(choices=[('operational', 'Operational'), ('financial', 'Financial'), ('compliance', 'Compliance'), ('strategic', 'Strategic'), ('reputational', 'Reputational')], max_length=20)),
                ('likelihood', models.IntegerField(choices=RATING_CHOICES, default=1, validators=rating_validators())),
                ('impact', models.IntegerField(choices=RATING_CHOICES, default=1, validators=rating_validators())),
                ('risk_score', models.DecimalField(decimal_places=1, default=1, editable=False, max_digits=3)),
                ('status', models.CharField(choices=[('identified', 'Identified'), ('assessed', 'Assessed'), ('mitigating', 'Mitigating'), ('closed', 'Closed')], default='identified', max_length=20)),
                ('department', models.CharField(blank=True, max_length=255, null=True)),
                ('identified_date', models.DateField()),
                ('target_closure_date', models.DateField(blank=True, null=True)),
                ('actual_closure_date', models.DateField(blank=True, null=True)),
                ('notes', models.TextField(blank=True, null=True)),
                ('version', models.PositiveIntegerField(default=1, editable=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('owner', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='owned_risks', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'Risk',
                'verbose_name_plural': 'Risks',
                'ordering': ['-created_at'],
                'permissions': [('manage_all_risks', 'Can manage all risks regardless of owner'), ('view_reports', 'Can view risk reports'), ('export_reports', 'Can export risk reports')],
                'indexes': [models.Index(fields=['category', 'status'], name='risk_category_status_idx'), models.Index(fields=['risk_score'], name='risk_score_idx')],
            },
        ),
        migrations.CreateModel(
            name='MitigationAction',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('deleted_at', models.DateTimeField(blank=True, db_index=True, null=True)),
                ('title', models.CharField(max_length=255)),
                ('description', models.TextField()),
                ('status', models.CharField(choices=[('planned', 'Planned'), ('in_progress', 'In Progress'), ('completed', 'Completed'), ('cancelled', 'Cancelled')], default='planned', max_length=20)),
                ('due_date', models.DateField()),
                ('completed_date', models.DateField(blank=True, null=True)),
                ('priority', models.IntegerField(choices=RATING_CHOICES, default=3, validators=rating_validators())),
                ('cost_estimate', models.DecimalField(blank=True, decimal_places=2, max_digits=10, null=True)),
                ('notes', models.TextField(blank=True, null=True)),
                ('version', models.PositiveIntegerField(default=1, editable=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('assigned_to', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='assigned_actions', to=settings.AUTH_USER_MODEL)),
                ('risk', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='mitigation_actions', to='risks.risk')),
            ],
            options={
                'ordering': ['-created_at'],
                'permissions': [('assign_mitigation_actions', 'Can reassign mitigation actions')],
                'indexes': [models.Index(fields=['status', 'due_date'], name='action_status_due_idx')],
            },
        ),
        migrations.CreateModel(
            name='RiskAssessment',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('likelihood_before', models.IntegerField(blank=True, choices=RATING_CHOICES, null=True, validators=rating_validators())),
                ('impact_before', models.IntegerField(blank=True, choices=RATING_CHOICES, null=True, validators=rating_validators())),
                ('risk_score_before', models.DecimalField(blank=True, decimal_places=1, editable=False, max_digits=3, null=True)),
                ('likelihood_after', models.IntegerField(choices=RATING_CHOICES, validators=rating_validators())),
                ('impact_after', models.IntegerField(choices=RATING_CHOICES, validators=rating_validators())),
                ('risk_score_after', models.DecimalField(decimal_places=1, editable=False, max_digits=3)),
                ('assessment_notes', models.TextField(blank=True, null=True)),
                ('assessment_date', models.DateField()),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('assessor', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='risk_assessments', to=settings.AUTH_USER_MODEL)),
                ('risk', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='assessments', to='risks.risk')),
            ],
            options={
                'ordering': ['-assessment_date', '-id'],
                'indexes': [models.Index(fields=['risk', 'assessment_date'], name='assessment_risk_date_idx')],
            },
        ),
    ]
