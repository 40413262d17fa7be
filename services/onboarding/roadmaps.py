"""
Industry Roadmaps
=================

Static onboarding roadmaps per industry. Each roadmap drives dashboard
guidance and checklist generation.

Unknown industries fall back to the ``other`` roadmap.

Version: 0.1.0
"""

from services.onboarding.models import (
    IndustryRoadmap,
    RoadmapPhase,
    RoadmapStep,
    StepCategory,
    StepPriority,
)


CRITICAL = StepPriority.CRITICAL
HIGH = StepPriority.HIGH
MEDIUM = StepPriority.MEDIUM

SETUP = StepCategory.SETUP
COMPLIANCE = StepCategory.COMPLIANCE
OPERATIONAL = StepCategory.OPERATIONAL
READINESS = StepCategory.READINESS


def _step(
    step_id: str,
    title: str,
    description: str,
    cta: str,
    cta_href: str,
    priority: StepPriority,
    category: StepCategory,
    minutes: int,
    trigger: str | None = None,
) -> RoadmapStep:
    return RoadmapStep(
        id=step_id,
        title=title,
        description=description,
        cta=cta,
        cta_href=cta_href,
        priority=priority,
        category=category,
        estimated_minutes=minutes,
        automation_trigger=trigger,
    )


def _phase(
    phase_id: str,
    title: str,
    description: str,
    days: int,
    *steps: RoadmapStep,
) -> RoadmapPhase:
    return RoadmapPhase(
        id=phase_id,
        title=title,
        description=description,
        estimated_days=days,
        steps=steps,
    )


# =============================================================================
# Shared Steps
# =============================================================================

_AUDIT_PACK = _step(
    "audit-export",
    "Generate Audit Evidence Pack",
    "Export evidence bundles for internal review or auditors",
    "Generate Export",
    "/app/reports",
    CRITICAL,
    READINESS,
    5,
)

_COMPLIANCE_OVERVIEW_DESCRIPTION = "Track compliance progress and open gaps from the dashboard"


# =============================================================================
# NDIS / Disability Services
# =============================================================================

NDIS_ROADMAP = IndustryRoadmap(
    industry_id="ndis",
    industry_name="NDIS & Disability Services",
    tagline="NDIS-ready compliance workflows and evidence",
    estimated_time_to_operational="7-14 days",
    key_frameworks=("Policy pack", "Evidence vault", "Automation workflows"),
    phases=(
        _phase(
            "org-setup",
            "Organization Setup",
            "Configure your NDIS provider structure and team",
            2,
            _step(
                "provider-details",
                "Complete Provider Registration Details",
                "Confirm your organization profile, service scope, and compliance contacts",
                "Update Organization Profile",
                "/app/settings",
                CRITICAL,
                SETUP,
                15,
            ),
            _step(
                "staff-setup",
                "Add Staff & Service Delivery Team",
                "Create staff profiles, assign roles, track NDIS worker screening checks",
                "Manage Team Members",
                "/app/team",
                CRITICAL,
                SETUP,
                30,
            ),
            _step(
                "participant-onboarding",
                "Set Up Participant Records System",
                "Configure participant management, service agreements, and support plans",
                "Configure Participants",
                "/app/patients",
                HIGH,
                SETUP,
                20,
            ),
            _step(
                "location-setup",
                "Register Service Locations or Assets",
                "Capture service delivery sites or critical assets in registers",
                "Add to Registers",
                "/app/registers",
                HIGH,
                SETUP,
                10,
            ),
        ),
        _phase(
            "compliance-setup",
            "Compliance Framework Activation",
            "Enable baseline frameworks and industry policy templates",
            3,
            _step(
                "framework-provision",
                "Activate Baseline Compliance Frameworks",
                "Enable ISO 27001 / SOC 2 packs and align them to your NDIS operations",
                "Enable Frameworks",
                "/app/compliance/frameworks",
                CRITICAL,
                COMPLIANCE,
                5,
                "framework_activated",
            ),
            _step(
                "credential-register",
                "Set Up Worker Screening Register",
                "Track NDIS worker screening clearances, WWCC, and qualifications",
                "Configure Credential Register",
                "/app/registers",
                CRITICAL,
                COMPLIANCE,
                20,
            ),
            _step(
                "incident-system",
                "Set Up Incident Response Tasks",
                "Define incident response tasks, escalation owners, and review cadence",
                "Create Incident Tasks",
                "/app/tasks",
                CRITICAL,
                COMPLIANCE,
                15,
                "incident_register_activated",
            ),
            _step(
                "policy-library",
                "Review Pre-loaded NDIS Policies",
                "Review and approve Incident Management, Code of Conduct, "
                "Complaints Management policies",
                "Review Policy Library",
                "/app/policies",
                HIGH,
                COMPLIANCE,
                45,
            ),
        ),
        _phase(
            "operational",
            "Operational Workflows",
            "Deploy day-to-day compliance workflows",
            5,
            _step(
                "incident-logging",
                "Run a Test Incident Workflow",
                "Create a test incident task to validate your response workflow",
                "Create Incident Task",
                "/app/tasks",
                HIGH,
                OPERATIONAL,
                10,
                "incident_created",
            ),
            _step(
                "evidence-capture",
                "Upload First Compliance Evidence",
                "Store worker screening, insurance certificates, or training records",
                "Upload Evidence",
                "/app/vault",
                HIGH,
                OPERATIONAL,
                10,
                "evidence_uploaded",
            ),
            _step(
                "staff-credential-tracking",
                "Track Staff Credential Expiry",
                "Enable automation for expiring NDIS worker screening and qualification renewals",
                "Configure Credential Tracking",
                "/app/workflows",
                HIGH,
                OPERATIONAL,
                15,
                "credential_expiry_enabled",
            ),
            _step(
                "participant-workflows",
                "Implement Participant Record Workflows",
                "Configure service agreement tracking, plan review cycles, and consent management",
                "Set Up Participant Workflows",
                "/app/workflows",
                MEDIUM,
                OPERATIONAL,
                30,
            ),
        ),
        _phase(
            "audit-readiness",
            "Audit Readiness",
            "Prepare for NDIS Commission audits and reviews",
            3,
            _step(
                "compliance-scoring",
                "Review Compliance Overview",
                _COMPLIANCE_OVERVIEW_DESCRIPTION,
                "View Dashboard",
                "/app",
                HIGH,
                READINESS,
                10,
            ),
            _step(
                "evidence-vault",
                "Verify Evidence Vault Coverage",
                "Ensure all critical controls have supporting evidence uploaded and approved",
                "Audit Evidence Vault",
                "/app/vault",
                HIGH,
                READINESS,
                20,
            ),
            _AUDIT_PACK,
            _step(
                "auditor-sharing",
                "Prepare Auditor-Ready Exports",
                "Package evidence for external auditor review",
                "Open Reports",
                "/app/reports",
                MEDIUM,
                READINESS,
                5,
            ),
        ),
    ),
)


# =============================================================================
# Healthcare / Allied Health
# =============================================================================

HEALTHCARE_ROADMAP = IndustryRoadmap(
    industry_id="healthcare",
    industry_name="Healthcare & Allied Health",
    tagline="Clinical governance and audit-ready operations",
    estimated_time_to_operational="5-10 days",
    key_frameworks=("ISO 27001", "HIPAA-style controls", "Clinical policy pack"),
    phases=(
        _phase(
            "practice-setup",
            "Practice Setup",
            "Configure practice details and clinical team",
            1,
            _step(
                "practice-details",
                "Complete Practice Registration Details",
                "Confirm practice profile, accreditation contacts, and service scope",
                "Update Practice Profile",
                "/app/settings",
                CRITICAL,
                SETUP,
                15,
            ),
            _step(
                "clinician-setup",
                "Add Clinicians & Administrative Staff",
                "Create staff profiles, track AHPRA registrations, "
                "professional indemnity insurance",
                "Manage Clinical Team",
                "/app/team",
                CRITICAL,
                SETUP,
                30,
            ),
            _step(
                "location-setup",
                "Register Practice Sites or Assets",
                "Capture clinics or critical assets used for service delivery",
                "Add to Registers",
                "/app/registers",
                HIGH,
                SETUP,
                10,
            ),
        ),
        _phase(
            "clinical-governance",
            "Clinical Governance Setup",
            "Activate baseline frameworks and policies",
            2,
            _step(
                "racgp-framework",
                "Activate Baseline Compliance Frameworks",
                "Enable ISO 27001 / HIPAA-style controls aligned to clinical workflows",
                "Enable Frameworks",
                "/app/compliance/frameworks",
                CRITICAL,
                COMPLIANCE,
                5,
                "framework_activated",
            ),
            _step(
                "ahpra-tracking",
                "Set Up AHPRA Registration Tracking",
                "Monitor practitioner registration renewals, conditions, and endorsements",
                "Configure AHPRA Register",
                "/app/registers",
                CRITICAL,
                COMPLIANCE,
                20,
            ),
            _step(
                "incident-system",
                "Set Up Clinical Incident Tasks",
                "Create incident response tasks, escalation owners, and review cadence",
                "Create Incident Tasks",
                "/app/tasks",
                CRITICAL,
                COMPLIANCE,
                15,
                "incident_register_activated",
            ),
            _step(
                "policy-library",
                "Review Pre-loaded Clinical Policies",
                "Review Patient Privacy, Infection Control, and Data Breach Response policies",
                "Review Policy Library",
                "/app/policies",
                HIGH,
                COMPLIANCE,
                45,
            ),
        ),
        _phase(
            "operational",
            "Operational Workflows",
            "Deploy clinical and administrative workflows",
            4,
            _step(
                "credential-tracking",
                "Enable Credential Expiry Automation",
                "Auto-alert for expiring AHPRA registrations, CPD requirements, and insurance",
                "Configure Credential Automation",
                "/app/workflows",
                HIGH,
                OPERATIONAL,
                15,
                "credential_expiry_enabled",
            ),
            _step(
                "evidence-capture",
                "Upload First Compliance Evidence",
                "Store insurance certificates, infection control audits, or training records",
                "Upload Evidence",
                "/app/vault",
                HIGH,
                OPERATIONAL,
                10,
                "evidence_uploaded",
            ),
            _step(
                "quality-improvement",
                "Set Up Quality Improvement Cycles",
                "Configure clinical audit schedules, patient feedback systems, "
                "and review processes",
                "Configure QI Workflows",
                "/app/workflows",
                MEDIUM,
                OPERATIONAL,
                30,
            ),
        ),
        _phase(
            "accreditation-readiness",
            "Accreditation Readiness",
            "Prepare for accreditation assessment",
            3,
            _step(
                "compliance-dashboard",
                "Review Compliance Overview",
                _COMPLIANCE_OVERVIEW_DESCRIPTION,
                "View Dashboard",
                "/app",
                HIGH,
                READINESS,
                10,
            ),
            _step(
                "evidence-audit",
                "Verify Evidence Coverage",
                "Ensure critical criteria have supporting evidence",
                "Audit Evidence Vault",
                "/app/vault",
                HIGH,
                READINESS,
                20,
            ),
            _step(
                "accreditation-export",
                "Generate Audit Evidence Pack",
                "Export evidence bundles for internal review or auditors",
                "Generate Export",
                "/app/reports",
                CRITICAL,
                READINESS,
                5,
            ),
        ),
    ),
)


# =============================================================================
# Aged Care
# =============================================================================

AGED_CARE_ROADMAP = IndustryRoadmap(
    industry_id="aged_care",
    industry_name="Aged Care Residential",
    tagline="Audit-ready aged care operations",
    estimated_time_to_operational="7-14 days",
    key_frameworks=("ISO 27001", "Clinical policy pack", "Evidence vault"),
    phases=(
        _phase(
            "facility-setup",
            "Facility Setup",
            "Configure aged care facility details and team",
            2,
            _step(
                "provider-details",
                "Complete Provider Registration Details",
                "Confirm facility profile, accreditation contacts, and service scope",
                "Update Provider Profile",
                "/app/settings",
                CRITICAL,
                SETUP,
                15,
            ),
            _step(
                "staff-setup",
                "Add Staff & Clinical Team",
                "Create staff profiles, track qualifications, police checks, and training",
                "Manage Team Members",
                "/app/team",
                CRITICAL,
                SETUP,
                30,
            ),
            _step(
                "resident-system",
                "Set Up Resident Care Management",
                "Add resident records, care plans, and service agreements",
                "Manage Residents",
                "/app/patients",
                HIGH,
                SETUP,
                20,
            ),
        ),
        _phase(
            "quality-standards",
            "Compliance Activation",
            "Activate baseline frameworks and policies",
            3,
            _step(
                "quality-framework",
                "Activate Baseline Compliance Frameworks",
                "Enable ISO 27001 / HIPAA-style controls and map to care workflows",
                "Enable Frameworks",
                "/app/compliance/frameworks",
                CRITICAL,
                COMPLIANCE,
                5,
                "framework_activated",
            ),
            _step(
                "sirs-reporting",
                "Set Up Incident Response Tasks",
                "Create incident response tasks, escalation owners, and review cadence",
                "Create Incident Tasks",
                "/app/tasks",
                CRITICAL,
                COMPLIANCE,
                20,
                "sirs_activated",
            ),
            _step(
                "clinical-governance",
                "Set Up Clinical Governance Workflows",
                "Configure care quality reviews, medication checks, and oversight workflows",
                "Configure Workflows",
                "/app/workflows",
                CRITICAL,
                COMPLIANCE,
                30,
            ),
            _step(
                "policy-library",
                "Review Pre-loaded Aged Care Policies",
                "Review Dignity & Choice, Clinical Governance, SIRS policies",
                "Review Policy Library",
                "/app/policies",
                HIGH,
                COMPLIANCE,
                45,
            ),
        ),
        _phase(
            "operational",
            "Operational Workflows",
            "Deploy aged care compliance workflows",
            5,
            _step(
                "staff-rosters",
                "Configure Staff Roster Compliance",
                "Track staffing levels, skill mix, and regulatory requirements",
                "Set Up Roster Monitoring",
                "/app/workflows",
                HIGH,
                OPERATIONAL,
                30,
            ),
            _step(
                "food-safety",
                "Enable Food Safety Auditing",
                "Track kitchen audits, temperature logs, and HACCP compliance",
                "Configure Food Safety",
                "/app/workflows",
                HIGH,
                OPERATIONAL,
                25,
            ),
            _step(
                "evidence-capture",
                "Upload First Compliance Evidence",
                "Store staff qualifications, care plans, or audit reports",
                "Upload Evidence",
                "/app/vault",
                HIGH,
                OPERATIONAL,
                10,
                "evidence_uploaded",
            ),
        ),
        _phase(
            "audit-readiness",
            "Audit Readiness",
            "Prepare for Quality Commission assessments",
            3,
            _step(
                "compliance-dashboard",
                "Review Compliance Overview",
                _COMPLIANCE_OVERVIEW_DESCRIPTION,
                "View Dashboard",
                "/app",
                HIGH,
                READINESS,
                10,
            ),
            _AUDIT_PACK,
        ),
    ),
)


# =============================================================================
# Financial Services
# =============================================================================

FINANCIAL_ROADMAP = IndustryRoadmap(
    industry_id="financial_services",
    industry_name="Financial Services",
    tagline="SOC 2, ISO 27001, and financial compliance excellence",
    estimated_time_to_operational="14-21 days",
    key_frameworks=("ISO 27001", "SOC 2", "PCI DSS"),
    phases=(
        _phase(
            "governance-setup",
            "Governance Setup",
            "Establish risk and governance foundations",
            5,
            _step(
                "risk-registers",
                "Create Enterprise Risk Register",
                "Document operational, financial, cyber, and regulatory risks",
                "Configure Risk Register",
                "/app/registers",
                CRITICAL,
                SETUP,
                60,
            ),
            _step(
                "vendor-risk",
                "Set Up Third-Party Vendor Risk Register",
                "Track vendor assessments, contracts, and security posture",
                "Configure Vendor Register",
                "/app/registers",
                HIGH,
                SETUP,
                45,
            ),
            _step(
                "policy-lifecycle",
                "Activate Policy Lifecycle Management",
                "Configure review cycles, approval workflows, version control",
                "Set Up Policy Management",
                "/app/policies",
                HIGH,
                SETUP,
                30,
            ),
        ),
        _phase(
            "security-controls",
            "Security Control Activation",
            "Deploy ISO 27001 and SOC 2 frameworks",
            7,
            _step(
                "iso27001-framework",
                "Activate ISO 27001 Framework",
                "Provision ISO 27001 controls across core security domains",
                "Activate ISO 27001",
                "/app/compliance/frameworks",
                CRITICAL,
                COMPLIANCE,
                5,
                "framework_activated",
            ),
            _step(
                "soc2-framework",
                "Activate SOC 2 Type II Framework",
                "Enable Trust Service Criteria across security and availability domains",
                "Activate SOC 2",
                "/app/compliance/frameworks",
                CRITICAL,
                COMPLIANCE,
                5,
                "framework_activated",
            ),
            _step(
                "evidence-capture",
                "Configure Evidence Collection Automation",
                "Auto-capture logs, change records, access reviews, security scans",
                "Configure Evidence Automation",
                "/app/workflows",
                HIGH,
                COMPLIANCE,
                45,
                "evidence_automation_enabled",
            ),
        ),
        _phase(
            "monitoring",
            "Automation & Monitoring",
            "Enable continuous compliance intelligence",
            5,
            _step(
                "evidence-expiry",
                "Enable Evidence Expiry Tracking",
                "Auto-alert when evidence > 90 days old, trigger renewal tasks",
                "Configure Expiry Automation",
                "/app/workflows",
                HIGH,
                OPERATIONAL,
                15,
                "evidence_expiry_enabled",
            ),
            _step(
                "control-monitoring",
                "Activate Control Failure Alerts",
                "Escalate non-compliant controls, auto-create remediation tasks",
                "Configure Control Monitoring",
                "/app/workflows",
                CRITICAL,
                OPERATIONAL,
                20,
                "control_failure_enabled",
            ),
            _step(
                "compliance-intelligence",
                "Review Compliance Activity",
                "Monitor audit activity, remediation tasks, and control changes",
                "Open Audit Log",
                "/app/audit",
                MEDIUM,
                OPERATIONAL,
                10,
            ),
        ),
        _phase(
            "certification-readiness",
            "Certification Readiness",
            "Prepare for external audits and certifications",
            4,
            _step(
                "compliance-dashboard",
                "Review Compliance Overview",
                _COMPLIANCE_OVERVIEW_DESCRIPTION,
                "View Dashboard",
                "/app",
                HIGH,
                READINESS,
                15,
            ),
            _AUDIT_PACK,
            _step(
                "auditor-portal",
                "Prepare Auditor-Ready Exports",
                "Package evidence for external auditor review",
                "Open Reports",
                "/app/reports",
                HIGH,
                READINESS,
                10,
            ),
        ),
    ),
)


# =============================================================================
# SaaS / Technology
# =============================================================================

SAAS_ROADMAP = IndustryRoadmap(
    industry_id="saas_technology",
    industry_name="SaaS & Technology",
    tagline="Security-first compliance for modern tech companies",
    estimated_time_to_operational="10-14 days",
    key_frameworks=("SOC 2", "ISO 27001", "GDPR"),
    phases=(
        _phase(
            "security-foundation",
            "Security Foundation",
            "Establish core security controls",
            3,
            _step(
                "soc2-activation",
                "Activate SOC 2 Framework",
                "Enable Trust Service Criteria for security, availability, confidentiality",
                "Activate SOC 2",
                "/app/compliance/frameworks",
                CRITICAL,
                SETUP,
                5,
                "framework_activated",
            ),
            _step(
                "iso27001-activation",
                "Activate ISO 27001 Framework",
                "Provision information security management system controls",
                "Activate ISO 27001",
                "/app/compliance/frameworks",
                CRITICAL,
                SETUP,
                5,
                "framework_activated",
            ),
            _step(
                "devops-workflows",
                "Configure DevOps Security Workflows",
                "Track change management, deployment gates, access controls",
                "Set Up DevOps Compliance",
                "/app/workflows",
                HIGH,
                SETUP,
                45,
            ),
        ),
        _phase(
            "evidence-automation",
            "Evidence Automation",
            "Auto-capture compliance evidence",
            4,
            _step(
                "change-management",
                "Enable Change Management Logging",
                "Auto-capture deployment logs, change approvals, rollback events",
                "Configure Change Logging",
                "/app/workflows",
                HIGH,
                OPERATIONAL,
                30,
                "change_logging_enabled",
            ),
            _step(
                "access-control",
                "Automate Access Control Reviews",
                "Quarterly access audits, privilege escalation tracking, "
                "offboarding verification",
                "Configure Access Reviews",
                "/app/workflows",
                HIGH,
                OPERATIONAL,
                45,
                "access_review_enabled",
            ),
            _step(
                "vendor-security",
                "Track Vendor Security Assessments",
                "Auto-request vendor security questionnaires, SOC 2 reports, "
                "penetration tests",
                "Configure Vendor Tracking",
                "/app/registers",
                MEDIUM,
                OPERATIONAL,
                30,
            ),
        ),
        _phase(
            "customer-trust",
            "Customer Trust Enablement",
            "Build customer-facing trust infrastructure",
            4,
            _step(
                "trust-reporting",
                "Generate Customer Trust Reports",
                "Create compliance summaries for customer security reviews",
                "Open Reports",
                "/app/reports",
                HIGH,
                READINESS,
                20,
            ),
            _step(
                "compliance-dashboards",
                "Review Compliance Dashboards",
                _COMPLIANCE_OVERVIEW_DESCRIPTION,
                "View Dashboard",
                "/app",
                MEDIUM,
                READINESS,
                30,
            ),
            _step(
                "security-posture",
                "Generate Security Posture Summary",
                "Executive summary of frameworks and control coverage",
                "Open Reports",
                "/app/reports",
                HIGH,
                READINESS,
                10,
            ),
        ),
        _phase(
            "certification",
            "SOC 2 Certification",
            "Prepare for Type II audit",
            3,
            _step(
                "audit-readiness",
                "Review SOC 2 Control Coverage",
                "Validate SOC 2 coverage and track gaps in the framework library",
                "View Frameworks",
                "/app/compliance/frameworks",
                CRITICAL,
                READINESS,
                5,
            ),
            _AUDIT_PACK,
            _step(
                "auditor-portal",
                "Prepare Auditor-Ready Exports",
                "Package evidence for external auditor review",
                "Open Reports",
                "/app/reports",
                HIGH,
                READINESS,
                10,
            ),
        ),
    ),
)


# =============================================================================
# Enterprise Multi-Site
# =============================================================================

ENTERPRISE_ROADMAP = IndustryRoadmap(
    industry_id="enterprise",
    industry_name="Enterprise Multi-Site",
    tagline="Enterprise governance and scalable compliance operations",
    estimated_time_to_operational="21-30 days",
    key_frameworks=("Framework library", "Policy governance", "Audit exports"),
    phases=(
        _phase(
            "hierarchy-setup",
            "Organization Hierarchy",
            "Structure enterprise governance and accountability",
            7,
            _step(
                "department-creation",
                "Assign Departments & Owners",
                "Capture departments and accountability in team profiles",
                "Manage People",
                "/app/people",
                CRITICAL,
                SETUP,
                60,
            ),
            _step(
                "multi-site-governance",
                "Confirm Organization Governance",
                "Review org settings, compliance contacts, and governance details",
                "Review Settings",
                "/app/settings",
                CRITICAL,
                SETUP,
                90,
            ),
            _step(
                "business-unit-linking",
                "Invite Cross-Functional Teams",
                "Bring business units into a shared compliance workspace",
                "Invite Teams",
                "/app/team",
                HIGH,
                SETUP,
                45,
            ),
        ),
        _phase(
            "cross-framework",
            "Cross-Framework Compliance",
            "Activate frameworks and compare coverage",
            7,
            _step(
                "shared-controls",
                "Activate Framework Library",
                "Enable core frameworks and review mapped controls",
                "View Frameworks",
                "/app/compliance/frameworks",
                CRITICAL,
                COMPLIANCE,
                120,
            ),
            _step(
                "control-deduplication",
                "Review Control Overlap",
                "Identify overlapping controls and reduce duplicate evidence",
                "Review Mappings",
                "/app/compliance/frameworks",
                HIGH,
                COMPLIANCE,
                30,
                "deduplication_enabled",
            ),
            _step(
                "multi-site-dashboards",
                "Review Compliance Overview",
                _COMPLIANCE_OVERVIEW_DESCRIPTION,
                "View Dashboard",
                "/app",
                HIGH,
                COMPLIANCE,
                45,
            ),
        ),
        _phase(
            "executive-governance",
            "Executive Governance",
            "Executive visibility into compliance posture",
            10,
            _step(
                "cross-site-scoring",
                "Review Compliance Scoring",
                "Track compliance scores and trends from the dashboard",
                "View Dashboard",
                "/app",
                CRITICAL,
                OPERATIONAL,
                60,
                "cross_site_scoring_enabled",
            ),
            _step(
                "risk-intelligence",
                "Review Audit Activity",
                "Monitor audit events, control changes, and remediation tasks",
                "Open Audit Log",
                "/app/audit",
                HIGH,
                OPERATIONAL,
                30,
            ),
            _step(
                "board-reporting",
                "Generate Executive Summaries",
                "Export summaries for leadership and stakeholder updates",
                "Open Reports",
                "/app/reports",
                HIGH,
                OPERATIONAL,
                45,
            ),
        ),
        _phase(
            "enterprise-readiness",
            "Enterprise Audit Readiness",
            "Prepare for enterprise audits and reviews",
            6,
            _step(
                "consolidated-evidence",
                "Centralize Evidence Vault",
                "Maintain a single source of truth for audit evidence",
                "View Evidence Vault",
                "/app/vault",
                CRITICAL,
                READINESS,
                20,
            ),
            _step(
                "enterprise-audit-export",
                "Generate Audit Evidence Pack",
                "Export evidence bundles for internal review or auditors",
                "Generate Export",
                "/app/reports",
                CRITICAL,
                READINESS,
                10,
            ),
            _step(
                "executive-dashboard",
                "Review Executive Dashboard",
                "Summarize enterprise compliance posture for leadership",
                "View Dashboard",
                "/app",
                HIGH,
                READINESS,
                15,
            ),
        ),
    ),
)


# =============================================================================
# Childcare / Early Learning
# =============================================================================

CHILDCARE_ROADMAP = IndustryRoadmap(
    industry_id="childcare",
    industry_name="Childcare / Early Learning",
    tagline="Quality standards and evidence-ready operations",
    estimated_time_to_operational="5-10 days",
    key_frameworks=("ISO 27001", "Childcare policy pack", "Evidence vault"),
    phases=(
        _phase(
            "service-setup",
            "Service Setup",
            "Configure childcare service details",
            2,
            _step(
                "service-details",
                "Complete Service Registration Details",
                "Confirm service profile, licensing contacts, and operating scope",
                "Update Service Profile",
                "/app/settings",
                CRITICAL,
                SETUP,
                15,
            ),
            _step(
                "educator-setup",
                "Add Educators & Staff",
                "Create educator profiles, track WWCC, qualifications, and ratios",
                "Manage Educators",
                "/app/team",
                CRITICAL,
                SETUP,
                30,
            ),
            _step(
                "child-enrollment",
                "Set Up Child Enrollment System",
                "Configure child records, emergency contacts, and medical information",
                "Configure Enrollments",
                "/app/patients",
                HIGH,
                SETUP,
                20,
            ),
        ),
        _phase(
            "nqf-compliance",
            "Compliance Setup",
            "Activate baseline frameworks and policies",
            2,
            _step(
                "nqf-framework",
                "Activate Baseline Compliance Frameworks",
                "Enable ISO 27001 / GDPR packs aligned to childcare operations",
                "Enable Frameworks",
                "/app/compliance/frameworks",
                CRITICAL,
                COMPLIANCE,
                5,
                "framework_activated",
            ),
            _step(
                "wwcc-tracking",
                "Set Up WWCC Register",
                "Track Working with Children Checks for all educators and staff",
                "Configure WWCC Register",
                "/app/registers",
                CRITICAL,
                COMPLIANCE,
                20,
            ),
            _step(
                "policy-library",
                "Review Pre-loaded NQF Policies",
                "Review Child Protection, Delivery & Collection, Sun Protection policies",
                "Review Policy Library",
                "/app/policies",
                HIGH,
                COMPLIANCE,
                45,
            ),
        ),
        _phase(
            "operational",
            "Operational Workflows",
            "Deploy childcare compliance workflows",
            3,
            _step(
                "evacuation-plans",
                "Configure Emergency Response Workflows",
                "Track drills, emergency procedures, and review cadence",
                "Set Up Workflows",
                "/app/workflows",
                CRITICAL,
                OPERATIONAL,
                30,
            ),
            _step(
                "evidence-capture",
                "Upload First Compliance Evidence",
                "Store WWCC, qualifications, or evacuation drill records",
                "Upload Evidence",
                "/app/vault",
                HIGH,
                OPERATIONAL,
                10,
                "evidence_uploaded",
            ),
        ),
        _phase(
            "qip-readiness",
            "QIP & Assessment Readiness",
            "Prepare for regulatory assessments",
            3,
            _step(
                "qip-review",
                "Review Improvement Progress",
                "Track improvement actions and evidence readiness progress",
                "Open Reports",
                "/app/reports",
                HIGH,
                READINESS,
                20,
            ),
            _step(
                "audit-export",
                "Generate Assessment Pack",
                "Export complete evidence bundle for regulatory assessment",
                "Generate Export",
                "/app/reports",
                CRITICAL,
                READINESS,
                5,
            ),
        ),
    ),
)


# =============================================================================
# Community Services
# =============================================================================

COMMUNITY_SERVICES_ROADMAP = IndustryRoadmap(
    industry_id="community_services",
    industry_name="Community Services",
    tagline="Service quality and compliance across programs and teams",
    estimated_time_to_operational="7-10 days",
    key_frameworks=("ISO 27001", "Policy pack", "Evidence vault"),
    phases=(
        _phase(
            "program-setup",
            "Program Setup",
            "Configure community service programs",
            2,
            _step(
                "organization-details",
                "Complete Organization Details",
                "Enter organization ABN, funding bodies, and program registrations",
                "Configure Organization",
                "/app/settings",
                CRITICAL,
                SETUP,
                15,
            ),
            _step(
                "staff-setup",
                "Add Staff & Volunteers",
                "Create team profiles, track clearances, qualifications, and training",
                "Manage Team",
                "/app/team",
                CRITICAL,
                SETUP,
                30,
            ),
            _step(
                "client-system",
                "Set Up Client Management",
                "Configure client records, service agreements, and outcomes tracking",
                "Configure Client System",
                "/app/patients",
                HIGH,
                SETUP,
                20,
            ),
        ),
        _phase(
            "compliance-setup",
            "Compliance Setup",
            "Activate baseline frameworks and policies",
            2,
            _step(
                "quality-framework",
                "Activate Baseline Compliance Frameworks",
                "Enable ISO 27001 / GDPR packs aligned to service delivery",
                "Enable Frameworks",
                "/app/compliance/frameworks",
                CRITICAL,
                COMPLIANCE,
                5,
                "framework_activated",
            ),
            _step(
                "clearance-tracking",
                "Set Up Clearance Register",
                "Track WWCC, police checks, and volunteer screening",
                "Configure Clearance Register",
                "/app/registers",
                CRITICAL,
                COMPLIANCE,
                20,
            ),
            _step(
                "policy-library",
                "Review Pre-loaded Service Policies",
                "Review Client Rights, Privacy, and Service Delivery policies",
                "Review Policy Library",
                "/app/policies",
                HIGH,
                COMPLIANCE,
                30,
            ),
        ),
        _phase(
            "operational",
            "Operational Workflows",
            "Deploy service delivery workflows",
            3,
            _step(
                "program-monitoring",
                "Configure Program Outcome Tracking",
                "Track service delivery, client outcomes, and program effectiveness",
                "Set Up Outcome Tracking",
                "/app/workflows",
                HIGH,
                OPERATIONAL,
                30,
            ),
            _step(
                "evidence-capture",
                "Upload First Compliance Evidence",
                "Store clearances, service agreements, or outcome reports",
                "Upload Evidence",
                "/app/vault",
                HIGH,
                OPERATIONAL,
                10,
                "evidence_uploaded",
            ),
        ),
        _phase(
            "audit-readiness",
            "Audit Readiness",
            "Prepare for funding body and regulatory audits",
            3,
            _step(
                "compliance-dashboard",
                "Review Compliance Overview",
                _COMPLIANCE_OVERVIEW_DESCRIPTION,
                "View Dashboard",
                "/app",
                HIGH,
                READINESS,
                10,
            ),
            _step(
                "audit-export",
                "Generate Compliance Pack",
                "Export complete evidence bundle for funding body or audit",
                "Generate Export",
                "/app/reports",
                CRITICAL,
                READINESS,
                5,
            ),
        ),
    ),
)


# =============================================================================
# Default
# =============================================================================

DEFAULT_ROADMAP = IndustryRoadmap(
    industry_id="other",
    industry_name="Other Regulated Services",
    tagline="Flexible compliance infrastructure for regulated industries",
    estimated_time_to_operational="10-14 days",
    key_frameworks=("ISO 27001", "SOC 2", "GDPR"),
    phases=(
        _phase(
            "setup",
            "Organization Setup",
            "Configure your organization structure",
            2,
            _step(
                "org-details",
                "Complete Organization Details",
                "Enter organization name, industry details, and regulatory requirements",
                "Configure Organization",
                "/app/settings",
                CRITICAL,
                SETUP,
                15,
            ),
            _step(
                "team-setup",
                "Add Team Members",
                "Invite your compliance and operations team",
                "Manage Team",
                "/app/team",
                CRITICAL,
                SETUP,
                20,
            ),
        ),
        _phase(
            "framework-setup",
            "Framework Setup",
            "Activate relevant compliance frameworks",
            3,
            _step(
                "framework-selection",
                "Select Compliance Frameworks",
                "Choose from ISO 27001, SOC 2, GDPR, or custom frameworks",
                "Select Frameworks",
                "/app/compliance/frameworks",
                CRITICAL,
                COMPLIANCE,
                15,
            ),
            _step(
                "policy-library",
                "Review Pre-loaded Policies",
                "Review and customize policy templates",
                "Review Policy Library",
                "/app/policies",
                HIGH,
                COMPLIANCE,
                30,
            ),
        ),
        _phase(
            "operational",
            "Operational Setup",
            "Deploy compliance workflows",
            5,
            _step(
                "evidence-capture",
                "Upload First Evidence",
                "Store compliance artifacts in the evidence vault",
                "Upload Evidence",
                "/app/vault",
                HIGH,
                OPERATIONAL,
                10,
            ),
            _step(
                "automation-setup",
                "Configure Automation",
                "Enable evidence expiry tracking and compliance alerts",
                "Configure Automation",
                "/app/workflows",
                HIGH,
                OPERATIONAL,
                20,
            ),
        ),
        _phase(
            "readiness",
            "Audit Readiness",
            "Prepare for compliance audits",
            4,
            _step(
                "compliance-review",
                "Review Compliance Status",
                "Monitor compliance scores and identify gaps",
                "View Dashboard",
                "/app",
                HIGH,
                READINESS,
                15,
            ),
            _step(
                "audit-export",
                "Generate Audit Package",
                "Export evidence bundle for external auditors",
                "Generate Export",
                "/app/reports",
                CRITICAL,
                READINESS,
                5,
            ),
        ),
    ),
)


INDUSTRY_ROADMAPS: dict[str, IndustryRoadmap] = {
    roadmap.industry_id: roadmap
    for roadmap in (
        NDIS_ROADMAP,
        HEALTHCARE_ROADMAP,
        AGED_CARE_ROADMAP,
        CHILDCARE_ROADMAP,
        COMMUNITY_SERVICES_ROADMAP,
        FINANCIAL_ROADMAP,
        SAAS_ROADMAP,
        ENTERPRISE_ROADMAP,
        DEFAULT_ROADMAP,
    )
}


# =============================================================================
# Lookups
# =============================================================================


def get_roadmap_for_industry(industry_id: str | None) -> IndustryRoadmap:
    """Return the roadmap for an industry, or the default roadmap."""
    if not industry_id:
        return DEFAULT_ROADMAP
    return INDUSTRY_ROADMAPS.get(industry_id, DEFAULT_ROADMAP)


def get_all_industries() -> list[IndustryRoadmap]:
    return list(INDUSTRY_ROADMAPS.values())


def get_total_steps(roadmap: IndustryRoadmap) -> int:
    return sum(len(phase.steps) for phase in roadmap.phases)


def get_total_estimated_days(roadmap: IndustryRoadmap) -> int:
    return sum(phase.estimated_days for phase in roadmap.phases)


def get_steps_by_category(
    roadmap: IndustryRoadmap,
    category: StepCategory,
) -> list[RoadmapStep]:
    return [
        step
        for phase in roadmap.phases
        for step in phase.steps
        if step.category == category
    ]


def get_steps_by_priority(
    roadmap: IndustryRoadmap,
    priority: StepPriority,
) -> list[RoadmapStep]:
    return [
        step
        for phase in roadmap.phases
        for step in phase.steps
        if step.priority == priority
    ]
