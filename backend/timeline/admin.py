from django.contrib import admin

from .models import AthleteProfile, AthleteTask, Event, Interaction, School, Suggestion, Task, Video


@admin.register(Task)
class TaskAdmin(admin.ModelAdmin):
    list_display = ('id', 'title', 'category', 'grade_level', 'required')
    list_filter = ('grade_level', 'category', 'required')
    search_fields = ('id', 'title')


@admin.register(AthleteProfile)
class AthleteProfileAdmin(admin.ModelAdmin):
    list_display = ('name', 'grade_level', 'current_phase', 'status_score', 'status_label')
    readonly_fields = ('current_phase', 'phase_milestone_data', 'status_score', 'status_label',
                       'status_breakdown', 'status_updated_at')


@admin.register(AthleteTask)
class AthleteTaskAdmin(admin.ModelAdmin):
    list_display = ('athlete', 'task', 'status', 'completed_at', 'is_recovery_task')
    list_filter = ('status', 'is_recovery_task')


@admin.register(Suggestion)
class SuggestionAdmin(admin.ModelAdmin):
    list_display = ('athlete', 'rule_type', 'urgency', 'dismissed', 'completed', 'reappeared', 'created_at')
    list_filter = ('rule_type', 'urgency', 'dismissed', 'completed')


admin.site.register([School, Event, Interaction, Video])
