"""Keyword taxonomy used for entity scoring.

Plain data: category -> keyword entries of ``pattern`` (regex, matched
case-insensitively), ``weight``, ``name`` and ``exact`` (branded term that
earns the exact-match bonus). The scoring engine only iterates this table.
"""

TAXONOMY = {
    "readiness": {
        "name": "Readiness",
        "description": "Portrait of a Graduate / Strategic Vision",
        "keywords": [
            # Portrait of a Graduate
            {"pattern": r"portrait\s+of\s+(a\s+)?graduate", "weight": 1.0, "name": "portrait_of_graduate", "exact": True},
            {"pattern": r"graduate\s+profile", "weight": 1.0, "name": "graduate_profile", "exact": True},
            {"pattern": r"learner\s+profile", "weight": 0.9, "name": "learner_profile", "exact": False},
            {"pattern": r"graduate\s+competenc(y|ies)", "weight": 0.9, "name": "graduate_competencies", "exact": False},
            {"pattern": r"profile\s+of\s+(a\s+)?graduate", "weight": 1.0, "name": "profile_of_graduate", "exact": True},
            {"pattern": r"student\s+success\s+vision", "weight": 0.8, "name": "student_success_vision", "exact": False},
            {"pattern": r"future[- ]?ready\s+skills", "weight": 0.7, "name": "future_ready_skills", "exact": False},
            {"pattern": r"habits\s+of\s+success", "weight": 0.7, "name": "habits_of_success", "exact": False},
            # Community Compass
            {"pattern": r"community\s+compass", "weight": 0.9, "name": "community_compass", "exact": True},
            {"pattern": r"stakeholder\s+engagement\s+framework", "weight": 0.85, "name": "stakeholder_engagement", "exact": False},
            {"pattern": r"community\s+commitments?", "weight": 0.8, "name": "community_commitments", "exact": False},
            {"pattern": r"community\s+visioning", "weight": 0.8, "name": "community_visioning", "exact": False},
            {"pattern": r"listening\s+sessions?", "weight": 0.6, "name": "listening_sessions", "exact": False},
            {"pattern": r"listening\s+tour", "weight": 0.6, "name": "listening_tour", "exact": False},
            # Strategic planning
            {"pattern": r"strategic\s+plan(?:ning)?", "weight": 0.8, "name": "strategic_plan", "exact": False},
            {"pattern": r"strategic\s+priorit(y|ies)", "weight": 0.8, "name": "strategic_priorities", "exact": False},
            {"pattern": r"district\s+vision\s+(&|and)\s+goals", "weight": 0.7, "name": "district_vision_goals", "exact": False},
            {"pattern": r"strategic\s+framework", "weight": 0.7, "name": "strategic_framework", "exact": False},
            {"pattern": r"strategic\s+roadmap", "weight": 0.7, "name": "strategic_roadmap", "exact": False},
            {"pattern": r"mission[/\s]vision\s+refresh", "weight": 0.6, "name": "mission_vision_refresh", "exact": False},
            # Implementation roadmap
            {"pattern": r"implementation\s+roadmap", "weight": 0.7, "name": "implementation_roadmap", "exact": False},
            {"pattern": r"portrait\s+roadmap", "weight": 0.7, "name": "portrait_roadmap", "exact": False},
            {"pattern": r"action\s+roadmap", "weight": 0.7, "name": "action_roadmap", "exact": False},
            {"pattern": r"operationalize\s+portrait", "weight": 0.7, "name": "operationalize_portrait", "exact": False},
        ],
    },
    "alignment": {
        "name": "Alignment",
        "description": "Portrait to Practice / System Implementation",
        "keywords": [
            # Portraits of educators
            {"pattern": r"portrait\s+of\s+educators?", "weight": 0.9, "name": "portrait_of_educators", "exact": True},
            {"pattern": r"educator\s+competenc(y|ies)", "weight": 0.9, "name": "educator_competencies", "exact": False},
            {"pattern": r"teacher\s+competenc(y|ies)", "weight": 0.9, "name": "teacher_competencies", "exact": False},
            {"pattern": r"leadership\s+competenc(y|ies)", "weight": 0.85, "name": "leadership_competencies", "exact": False},
            {"pattern": r"educator\s+profile", "weight": 0.85, "name": "educator_profile", "exact": False},
            {"pattern": r"staff\s+competenc(y|ies)", "weight": 0.8, "name": "staff_competencies", "exact": False},
            {"pattern": r"adult\s+competenc(y|ies)", "weight": 0.8, "name": "adult_competencies", "exact": False},
            {"pattern": r"instructional\s+competenc(y|ies)", "weight": 0.8, "name": "instructional_competencies", "exact": False},
            # Frameworks for learning
            {"pattern": r"framework(s)?\s+for\s+learning", "weight": 0.85, "name": "frameworks_for_learning", "exact": True},
            {"pattern": r"learning\s+framework", "weight": 0.85, "name": "learning_framework", "exact": False},
            {"pattern": r"instructional\s+framework", "weight": 0.85, "name": "instructional_framework", "exact": False},
            {"pattern": r"graduate\s+profile[- ]aligned\s+curriculum", "weight": 0.85, "name": "profile_aligned_curriculum", "exact": False},
            {"pattern": r"learning\s+design\s+framework", "weight": 0.8, "name": "learning_design_framework", "exact": False},
            {"pattern": r"curricular\s+alignment", "weight": 0.75, "name": "curricular_alignment", "exact": False},
            {"pattern": r"competency[- ]based\s+pathways?", "weight": 0.75, "name": "competency_based_pathways", "exact": False},
            # Learning experience accelerator
            {"pattern": r"learning\s+experience\s+accelerator", "weight": 0.75, "name": "learning_experience_accelerator", "exact": True},
            {"pattern": r"teacher\s+capacity\s+building", "weight": 0.7, "name": "teacher_capacity_building", "exact": False},
            {"pattern": r"deeper\s+learning\s+for\s+teachers", "weight": 0.7, "name": "deeper_learning_teachers", "exact": False},
            {"pattern": r"collaborative\s+lesson\s+design", "weight": 0.65, "name": "collaborative_lesson_design", "exact": False},
            {"pattern": r"personalized\s+p[ld]\s+for\s+teachers", "weight": 0.65, "name": "personalized_pl_teachers", "exact": False},
            {"pattern": r"learning\s+labs?", "weight": 0.6, "name": "learning_labs", "exact": False},
            {"pattern": r"design\s+studios?", "weight": 0.6, "name": "design_studios", "exact": False},
        ],
    },
    "activation": {
        "name": "Activation",
        "description": "Measure What Matters / Evidence & Impact",
        "keywords": [
            # Measure what matters
            {"pattern": r"measure\s+what\s+matters", "weight": 0.9, "name": "measure_what_matters", "exact": True},
            {"pattern": r"performance\s+tasks?", "weight": 0.9, "name": "performance_tasks", "exact": False},
            {"pattern": r"capstone", "weight": 0.9, "name": "capstone", "exact": False},
            {"pattern": r"cornerstone", "weight": 0.9, "name": "cornerstone", "exact": False},
            {"pattern": r"competency\s+rubrics?", "weight": 0.85, "name": "competency_rubrics", "exact": False},
            {"pattern": r"beyond\s+test\s+scores", "weight": 0.8, "name": "beyond_test_scores", "exact": False},
            {"pattern": r"authentic\s+assessment", "weight": 0.8, "name": "authentic_assessment", "exact": False},
            {"pattern": r"portfolio\s+assessment", "weight": 0.8, "name": "portfolio_assessment", "exact": False},
            {"pattern": r"graduate\s+outcomes?\s+evidence", "weight": 0.8, "name": "graduate_outcomes_evidence", "exact": False},
            {"pattern": r"profile[- ]aligned\s+rubrics?", "weight": 0.8, "name": "profile_aligned_rubrics", "exact": False},
            {"pattern": r"evidence\s+of\s+learning", "weight": 0.75, "name": "evidence_of_learning", "exact": False},
            {"pattern": r"application\s+of\s+learning", "weight": 0.75, "name": "application_of_learning", "exact": False},
            # Impact showcases
            {"pattern": r"impact\s+showcase", "weight": 0.8, "name": "impact_showcase", "exact": True},
            {"pattern": r"student\s+showcase", "weight": 0.8, "name": "student_showcase", "exact": False},
            {"pattern": r"discovery\s+fairs?", "weight": 0.75, "name": "discovery_fairs", "exact": False},
            {"pattern": r"annual\s+celebrations?", "weight": 0.7, "name": "annual_celebrations", "exact": False},
            {"pattern": r"exhibition\s+of\s+learning", "weight": 0.8, "name": "exhibition_of_learning", "exact": False},
            {"pattern": r"portfolio\s+night", "weight": 0.75, "name": "portfolio_night", "exact": False},
            {"pattern": r"public\s+product", "weight": 0.75, "name": "public_product", "exact": False},
            {"pattern": r"community\s+celebration", "weight": 0.7, "name": "community_celebration", "exact": False},
        ],
    },
    "branding": {
        "name": "Branding & Communications",
        "description": "Strategic Storytelling / Cross-cutting Support",
        "keywords": [
            {"pattern": r"strategic\s+storytelling", "weight": 0.6, "name": "strategic_storytelling", "exact": True},
            {"pattern": r"brand\s+design", "weight": 0.6, "name": "brand_design", "exact": False},
            {"pattern": r"messaging\s+framework", "weight": 0.6, "name": "messaging_framework", "exact": False},
            {"pattern": r"portrait\s+launch\s+blueprint", "weight": 0.6, "name": "portrait_launch_blueprint", "exact": True},
            {"pattern": r"message\s+alignment", "weight": 0.55, "name": "message_alignment", "exact": False},
            {"pattern": r"communications?\s+roadmap", "weight": 0.55, "name": "communications_roadmap", "exact": False},
            {"pattern": r"narrative\s+framework", "weight": 0.55, "name": "narrative_framework", "exact": False},
            {"pattern": r"community\s+storytelling", "weight": 0.5, "name": "community_storytelling", "exact": False},
            {"pattern": r"campaign\s+plan", "weight": 0.5, "name": "campaign_plan", "exact": False},
        ],
    },
}

CATEGORIES = tuple(TAXONOMY.keys())

EXACT_MATCH_BONUS = 0.2
SCORE_SCALE = 2.0
SCORE_CAP = 10.0

# Recency bands, in 30-day months since discovery
RECENCY_UNKNOWN = 0.8
RECENCY_BANDS = [(6, 1.0), (12, 0.8)]
RECENCY_OLDEST = 0.6

FIRST_PARTY_URL_MARKERS = ["/plan", "/strategic", "/framework", "/portrait", "/vision", "/graduate"]
FIRST_PARTY_CATEGORIES = {"portrait_of_graduate", "strategic_plan"}
NEWS_URL_MARKERS = ["news", "article", "press", "blog"]
SPECIFICITY_FIRST_PARTY = 1.0
SPECIFICITY_NEWS = 0.5
SPECIFICITY_DEFAULT = 0.8

# Evaluated top to bottom; first satisfied rule wins
TIER_RULES = [
    ("tier1", {"total": 5.0, "readiness": 3.0, "activation": 2.0}),
    ("tier2", {"total": 2.0, "readiness": 1.5}),
]
DEFAULT_TIER = "tier3"

CONTEXT_WINDOW = 50
