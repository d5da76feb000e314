"""
Serializers for the timeline API.

Input serializers validate request payloads before they reach the
calculators; output serializers render persisted rows.
"""

import math

from rest_framework import serializers

from .domain import Division, TaskStatus
from .fit import FIT_DIMENSIONS
from .models import AthleteTask, Interaction, Suggestion


class TaskStatusUpdateSerializer(serializers.Serializer):
    """Body of PATCH /api/athletes/<id>/tasks/<task_id>/."""

    status = serializers.ChoiceField(choices=[s.value for s in TaskStatus])


class AthleteTaskSerializer(serializers.ModelSerializer):
    class Meta:
        model = AthleteTask
        fields = ['task_id', 'status', 'completed_at', 'is_recovery_task', 'updated_at']


class DivisionRecommendationQuerySerializer(serializers.Serializer):
    """Both values are optional; anything unusable means no recommendation."""

    division = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    fit_score = serializers.CharField(required=False, allow_blank=True, allow_null=True)

    def validate_division(self, value):
        """Accept aliases such as 'DI' or 'Division II'."""
        return Division.normalize(value) if value else None

    def validate_fit_score(self, value):
        try:
            score = float(value)
        except (TypeError, ValueError):
            return None
        return score if math.isfinite(score) else None


class FitScoreInputSerializer(serializers.Serializer):
    """Points per fit dimension; missing dimensions count as zero."""

    athletic = serializers.FloatField(min_value=0, required=False, allow_null=True)
    academic = serializers.FloatField(min_value=0, required=False, allow_null=True)
    opportunity = serializers.FloatField(min_value=0, required=False, allow_null=True)
    personal = serializers.FloatField(min_value=0, required=False, allow_null=True)

    def validate(self, attrs):
        if not any(attrs.get(dimension) for dimension in FIT_DIMENSIONS):
            raise serializers.ValidationError("Provide at least one fit dimension")
        return attrs


class SuggestionResolveSerializer(serializers.Serializer):
    dismissed = serializers.BooleanField(required=False, default=False)
    completed = serializers.BooleanField(required=False, default=False)

    def validate(self, attrs):
        if not attrs['dismissed'] and not attrs['completed']:
            raise serializers.ValidationError("Set dismissed or completed")
        return attrs


class SuggestionSerializer(serializers.ModelSerializer):
    class Meta:
        model = Suggestion
        fields = [
            'id',
            'rule_type',
            'urgency',
            'message',
            'action_type',
            'related_school_id',
            'related_task_id',
            'condition_snapshot',
            'reappeared',
            'previous_suggestion_id',
            'pending_surface',
            'surfaced_at',
            'dismissed',
            'completed',
            'created_at',
        ]


class InteractionSerializer(serializers.ModelSerializer):
    """Body of POST /api/athletes/<id>/interactions/; occurred_at defaults to now."""

    class Meta:
        model = Interaction
        fields = ['id', 'school', 'event', 'interaction_type', 'sentiment', 'occurred_at']
        read_only_fields = ['id']
        extra_kwargs = {'occurred_at': {'required': False}}

    def validate(self, attrs):
        athlete = self.context.get('athlete')
        for name in ('school', 'event'):
            related = attrs.get(name)
            if athlete is not None and related is not None and related.athlete_id != athlete.pk:
                raise serializers.ValidationError({name: f"This {name} belongs to another athlete"})
        return attrs
