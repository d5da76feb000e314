import django.core.validators
import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='Task',
            fields=[
                ('id', models.CharField(max_length=64, primary_key=True, serialize=False)),
                ('category', models.CharField(choices=[('academic', 'Academic'), ('athletic', 'Athletic'), ('recruiting', 'Recruiting'), ('exposure', 'Exposure'), ('mindset', 'Mindset')], max_length=20)),
                ('grade_level', models.PositiveSmallIntegerField(validators=[django.core.validators.MinValueValidator(9), django.core.validators.MaxValueValidator(12)])),
                ('title', models.CharField(max_length=255)),
                ('description', models.TextField(blank=True, default='')),
                ('required', models.BooleanField(default=False)),
                ('dependency_task_ids', models.JSONField(blank=True, default=list, help_text='Ids of tasks that must be completed first')),
                ('why_it_matters', models.TextField(blank=True, default='')),
                ('failure_risk', models.TextField(blank=True, default='')),
                ('division_applicability', models.JSONField(blank=True, default=list)),
            ],
            options={
                'ordering': ['grade_level', 'id'],
            },
        ),
        migrations.CreateModel(
            name='AthleteProfile',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=255)),
                ('graduation_year', models.PositiveSmallIntegerField(blank=True, null=True)),
                ('grade_level', models.PositiveSmallIntegerField(default=9, validators=[django.core.validators.MinValueValidator(9), django.core.validators.MaxValueValidator(12)])),
                ('gpa', models.DecimalField(blank=True, decimal_places=2, max_digits=3, null=True)),
                ('sat_score', models.PositiveSmallIntegerField(blank=True, null=True)),
                ('act_score', models.PositiveSmallIntegerField(blank=True, null=True)),
                ('ncaa_eligibility_status', models.CharField(choices=[('registered', 'Registered'), ('pending', 'Pending'), ('not_started', 'Not Started')], default='not_started', max_length=20)),
                ('current_phase', models.CharField(choices=[('freshman', 'Freshman'), ('sophomore', 'Sophomore'), ('junior', 'Junior'), ('senior', 'Senior'), ('committed', 'Committed')], default='freshman', editable=False, help_text='Derived from completed milestones; never set directly', max_length=20)),
                ('has_signed_commitment', models.BooleanField(default=False)),
                ('phase_milestone_data', models.JSONField(blank=True, default=dict, editable=False)),
                ('status_score', models.PositiveSmallIntegerField(blank=True, editable=False, null=True)),
                ('status_label', models.CharField(blank=True, choices=[('on_track', 'On Track'), ('slightly_behind', 'Slightly Behind'), ('at_risk', 'At Risk')], default='', editable=False, max_length=20)),
                ('status_breakdown', models.JSONField(blank=True, default=dict, editable=False)),
                ('status_updated_at', models.DateTimeField(blank=True, editable=False, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
        ),
        migrations.CreateModel(
            name='AthleteTask',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('status', models.CharField(choices=[('not_started', 'Not Started'), ('in_progress', 'In Progress'), ('completed', 'Completed'), ('skipped', 'Skipped')], default='not_started', max_length=20)),
                ('completed_at', models.DateTimeField(blank=True, null=True)),
                ('is_recovery_task', models.BooleanField(default=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('athlete', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='athlete_tasks', to='timeline.athleteprofile')),
                ('task', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='athlete_tasks', to='timeline.task')),
            ],
        ),
        migrations.AddConstraint(
            model_name='athletetask',
            constraint=models.UniqueConstraint(fields=('athlete', 'task'), name='unique_athlete_task'),
        ),
        migrations.CreateModel(
            name='School',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=255)),
                ('division', models.CharField(blank=True, choices=[('D1', 'D1'), ('D2', 'D2'), ('D3', 'D3'), ('NAIA', 'NAIA'), ('JUCO', 'JUCO')], default='', max_length=10)),
                ('status', models.CharField(choices=[('researching', 'Researching'), ('contacted', 'Contacted'), ('interested', 'Interested'), ('visited', 'Visited'), ('offered', 'Offered'), ('committed', 'Committed'), ('not_interested', 'Not Interested')], default='researching', max_length=20)),
                ('priority', models.CharField(blank=True, choices=[('A', 'A'), ('B', 'B'), ('C', 'C')], default='', max_length=1)),
                ('fit_score', models.PositiveSmallIntegerField(blank=True, null=True, validators=[django.core.validators.MaxValueValidator(100)])),
                ('fit_tier', models.CharField(blank=True, choices=[('match', 'Match'), ('reach', 'Reach'), ('safety', 'Safety'), ('unlikely', 'Unlikely')], default='', max_length=10)),
                ('twitter_handle', models.CharField(blank=True, default='', max_length=64)),
                ('instagram_handle', models.CharField(blank=True, default='', max_length=64)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('athlete', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='schools', to='timeline.athleteprofile')),
            ],
            options={
                'ordering': ['name'],
            },
        ),
        migrations.CreateModel(
            name='Event',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=255)),
                ('event_date', models.DateField(blank=True, null=True)),
                ('attended', models.BooleanField(default=False)),
                ('athlete', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='events', to='timeline.athleteprofile')),
                ('school', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='events', to='timeline.school')),
            ],
            options={
                'ordering': ['-event_date'],
            },
        ),
        migrations.CreateModel(
            name='Interaction',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('interaction_type', models.CharField(blank=True, default='', max_length=50)),
                ('sentiment', models.CharField(blank=True, default='', max_length=20)),
                ('occurred_at', models.DateTimeField()),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('athlete', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='interactions', to='timeline.athleteprofile')),
                ('event', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='interactions', to='timeline.event')),
                ('school', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='interactions', to='timeline.school')),
            ],
            options={
                'ordering': ['-occurred_at'],
            },
        ),
        migrations.CreateModel(
            name='Video',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('title', models.CharField(blank=True, default='', max_length=255)),
                ('url', models.URLField()),
                ('health_status', models.CharField(choices=[('healthy', 'Healthy'), ('broken', 'Broken'), ('unknown', 'Unknown')], default='unknown', max_length=10)),
                ('athlete', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='videos', to='timeline.athleteprofile')),
            ],
        ),
        migrations.CreateModel(
            name='Suggestion',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('rule_type', models.CharField(max_length=64)),
                ('urgency', models.CharField(choices=[('low', 'Low'), ('medium', 'Medium'), ('high', 'High')], max_length=10)),
                ('message', models.TextField()),
                ('action_type', models.CharField(blank=True, choices=[('add_school', 'Add School'), ('add_video', 'Add Video'), ('log_interaction', 'Log Interaction'), ('complete_task', 'Complete Task'), ('update_video', 'Update Video'), ('view_tasks', 'View Tasks')], default='', max_length=30)),
                ('dismissed', models.BooleanField(default=False)),
                ('dismissed_at', models.DateTimeField(blank=True, null=True)),
                ('completed', models.BooleanField(default=False)),
                ('completed_at', models.DateTimeField(blank=True, null=True)),
                ('pending_surface', models.BooleanField(default=True)),
                ('surfaced_at', models.DateTimeField(blank=True, null=True)),
                ('condition_snapshot', models.JSONField(blank=True, default=dict)),
                ('reappeared', models.BooleanField(default=False)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('athlete', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='suggestions', to='timeline.athleteprofile')),
                ('previous_suggestion', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='reappearances', to='timeline.suggestion')),
                ('related_school', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to='timeline.school')),
                ('related_task', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to='timeline.task')),
            ],
            options={
                'ordering': ['created_at', 'id'],
                'indexes': [models.Index(fields=['athlete', 'rule_type'], name='suggestion_athlete_rule_idx')],
            },
        ),
    ]
