"""
URL configuration for the timeline app.
"""

from django.urls import path
from . import views

urlpatterns = [
    path('', views.api_info, name='api-info'),
    # Athlete timeline
    path('athletes/<int:athlete_id>/tasks/', views.list_athlete_tasks, name='athlete-tasks'),
    path('athletes/<int:athlete_id>/tasks/<str:task_id>/', views.update_athlete_task, name='athlete-task-update'),
    path('athletes/<int:athlete_id>/phase/', views.athlete_phase, name='athlete-phase'),
    path('athletes/<int:athlete_id>/status/recalculate/', views.recalculate_athlete_status, name='athlete-status-recalculate'),
    path('athletes/<int:athlete_id>/what-matters-now/', views.what_matters_now, name='what-matters-now'),
    path('athletes/<int:athlete_id>/interactions/', views.log_interaction, name='log-interaction'),
    path('athletes/<int:athlete_id>/portfolio/', views.portfolio_health, name='portfolio-health'),
    path('athletes/<int:athlete_id>/recovery/', views.activate_recovery, name='activate-recovery'),
    # Suggestions
    path('athletes/<int:athlete_id>/suggestions/', views.list_suggestions, name='suggestions'),
    path('athletes/<int:athlete_id>/suggestions/evaluate/', views.evaluate_suggestions, name='evaluate-suggestions'),
    path('athletes/<int:athlete_id>/suggestions/<int:suggestion_id>/', views.resolve_suggestion, name='resolve-suggestion'),
    # Stateless calculators
    path('status/score/', views.calculate_status_score, name='status-score'),
    path('divisions/recommendation/', views.division_recommendation, name='division-recommendation'),
    path('fit-score/', views.fit_score, name='fit-score'),
]
