"""
UML diagram families.

Structural: class/package, object, component, composite structure,
deployment, profile, information flow.
Behavioral: use case, state machine, activity, interaction overview,
timing, communication.
"""

from ...core.models import (
    DEFAULT_UPDATE_FIELDS,
    ChildSpec,
    FamilyConfiguration,
    FieldSpec,
    FieldType,
    RelationSpec,
    ResourceSpec,
)
from ..serializers import node_with, serialize_child, serialize_node

VISIBILITIES = ("public", "protected", "private", "package")

PSEUDOSTATE_KINDS = (
    "initial", "deepHistory", "shallowHistory", "join", "fork",
    "junction", "choice", "entryPoint", "exitPoint",
)

NAME = FieldSpec(name="name")
TYPE = FieldSpec(name="type")
VISIBILITY = FieldSpec(name="visibility", choices=VISIBILITIES)
IS_STATIC = FieldSpec(name="isStatic", type=FieldType.BOOLEAN)
DEFAULT_VALUE = FieldSpec(name="defaultValue")


def _updatable(*extra) -> tuple:
    return DEFAULT_UPDATE_FIELDS + tuple(FieldSpec.parse(f) for f in extra)


def serialize_pseudostate(elem):
    result = serialize_node(elem)
    result["kind"] = elem.get("kind") or "initial"
    return result


ASSOCIATIONS = RelationSpec(name="associations", type="UMLAssociation", has_ends=True)
GENERALIZATIONS = RelationSpec(name="generalizations", type="UMLGeneralization")
DEPENDENCIES = RelationSpec(name="dependencies", type="UMLDependency")
INTERFACE_REALIZATIONS = RelationSpec(name="interface-realizations", type="UMLInterfaceRealization")
REALIZATIONS = RelationSpec(name="realizations", type="UMLRealization")

CONTROL_NODE_TYPES = (
    "UMLInitialNode", "UMLActivityFinalNode", "UMLFlowFinalNode",
    "UMLForkNode", "UMLJoinNode", "UMLMergeNode", "UMLDecisionNode",
)


CLASS = FamilyConfiguration(
    prefix="class",
    label="Class/Package Diagram",
    diagram_types=("UMLClassDiagram", "UMLPackageDiagram"),
    resources=(
        ResourceSpec(
            name="classes",
            types=("UMLClass",),
            update_fields=_updatable(
                {"name": "isAbstract", "type": FieldType.BOOLEAN},
                {"name": "isLeaf", "type": FieldType.BOOLEAN},
                {"name": "isActive", "type": FieldType.BOOLEAN},
            ),
            serializer=node_with(
                "isAbstract", "isLeaf", "isActive",
                attributes=serialize_child, operations=serialize_child,
            ),
            children=(
                ChildSpec(name="attributes", type="UMLAttribute", field="attributes",
                          create_fields=(NAME, TYPE, VISIBILITY, IS_STATIC, DEFAULT_VALUE)),
                ChildSpec(name="operations", type="UMLOperation", field="operations",
                          create_fields=(NAME, VISIBILITY, IS_STATIC)),
                ChildSpec(name="receptions", type="UMLReception", field="receptions"),
                ChildSpec(name="template-parameters", type="UMLTemplateParameter",
                          field="templateParameters"),
            ),
        ),
        ResourceSpec(
            name="interfaces",
            types=("UMLInterface",),
            children=(
                ChildSpec(name="attributes", type="UMLAttribute", field="attributes",
                          create_fields=(NAME, TYPE, VISIBILITY)),
                ChildSpec(name="operations", type="UMLOperation", field="operations",
                          create_fields=(NAME, VISIBILITY)),
            ),
        ),
        ResourceSpec(
            name="enumerations",
            types=("UMLEnumeration",),
            children=(
                ChildSpec(name="literals", type="UMLEnumerationLiteral", field="literals"),
            ),
        ),
        ResourceSpec(name="data-types", types=("UMLDataType", "UMLPrimitiveType", "UMLSignal")),
        ResourceSpec(name="packages", types=("UMLPackage", "UMLModel", "UMLSubsystem")),
    ),
    relations=(
        ASSOCIATIONS,
        GENERALIZATIONS,
        DEPENDENCIES,
        INTERFACE_REALIZATIONS,
        REALIZATIONS,
        RelationSpec(name="template-bindings", type="UMLTemplateBinding"),
    ),
)

USECASE = FamilyConfiguration(
    prefix="usecase",
    label="Use Case Diagram",
    diagram_types=("UMLUseCaseDiagram",),
    resources=(
        ResourceSpec(name="actors", types=("UMLActor",)),
        ResourceSpec(
            name="use-cases",
            types=("UMLUseCase",),
            children=(
                ChildSpec(name="extension-points", type="UMLExtensionPoint", field="extensionPoints"),
            ),
        ),
        ResourceSpec(name="subjects", types=("UMLUseCaseSubject",)),
    ),
    relations=(
        ASSOCIATIONS,
        RelationSpec(name="includes", type="UMLInclude"),
        RelationSpec(name="extends", type="UMLExtend"),
        GENERALIZATIONS,
        DEPENDENCIES,
    ),
)

OBJECT = FamilyConfiguration(
    prefix="object",
    label="Object Diagram",
    diagram_types=("UMLObjectDiagram",),
    resources=(
        ResourceSpec(
            name="objects",
            types=("UMLObject",),
            children=(ChildSpec(name="slots", type="UMLSlot", field="slots"),),
        ),
    ),
    relations=(RelationSpec(name="links", type="UMLLink", has_ends=True),),
)

COMPONENT = FamilyConfiguration(
    prefix="component",
    label="Component Diagram",
    diagram_types=("UMLComponentDiagram",),
    resources=(
        ResourceSpec(name="components", types=("UMLComponent",)),
        ResourceSpec(name="artifacts", types=("UMLArtifact",)),
    ),
    relations=(
        RelationSpec(name="component-realizations", type="UMLComponentRealization"),
        DEPENDENCIES,
        GENERALIZATIONS,
        INTERFACE_REALIZATIONS,
    ),
)

COMPOSITE = FamilyConfiguration(
    prefix="composite",
    label="Composite Structure Diagram",
    diagram_types=("UMLCompositeStructureDiagram",),
    resources=(
        ResourceSpec(name="ports", types=("UMLPort",)),
        ResourceSpec(name="parts", types=("UMLPart",)),
        ResourceSpec(name="collaborations", types=("UMLCollaboration",)),
        ResourceSpec(name="collaboration-uses", types=("UMLCollaborationUse",)),
        ResourceSpec(name="association-classes", types=("UMLAssociationClass",)),
    ),
    relations=(
        RelationSpec(name="role-bindings", type="UMLRoleBinding"),
        DEPENDENCIES,
        REALIZATIONS,
    ),
)

DEPLOYMENT = FamilyConfiguration(
    prefix="deployment",
    label="Deployment Diagram",
    diagram_types=("UMLDeploymentDiagram",),
    resources=(
        ResourceSpec(name="nodes", types=("UMLNode",)),
        ResourceSpec(name="node-instances", types=("UMLNodeInstance",)),
        ResourceSpec(name="artifact-instances", types=("UMLArtifactInstance",)),
        ResourceSpec(name="component-instances", types=("UMLComponentInstance",)),
        ResourceSpec(name="artifacts", types=("UMLArtifact",)),
    ),
    relations=(
        RelationSpec(name="deployments", type="UMLDeployment"),
        RelationSpec(name="communication-paths", type="UMLCommunicationPath"),
        DEPENDENCIES,
    ),
)

PROFILE = FamilyConfiguration(
    prefix="profile",
    label="Profile Diagram",
    diagram_types=("UMLProfileDiagram",),
    resources=(
        ResourceSpec(name="profiles", types=("UMLProfile",)),
        ResourceSpec(
            name="stereotypes",
            types=("UMLStereotype",),
            children=(
                ChildSpec(name="attributes", type="UMLAttribute", field="attributes",
                          create_fields=(NAME, TYPE)),
                ChildSpec(name="operations", type="UMLOperation", field="operations",
                          create_fields=(NAME, VISIBILITY, IS_STATIC)),
            ),
        ),
        ResourceSpec(name="metaclasses", types=("UMLMetaClass",)),
    ),
    relations=(RelationSpec(name="extensions", type="UMLExtension"),),
)

INFOFLOW = FamilyConfiguration(
    prefix="infoflow",
    label="Information Flow Diagram",
    diagram_types=("UMLInformationFlowDiagram",),
    resources=(ResourceSpec(name="info-items", types=("UMLInformationItem",)),),
    relations=(RelationSpec(name="information-flows", type="UMLInformationFlow"),),
)

STATEMACHINE = FamilyConfiguration(
    prefix="statemachine",
    label="State Machine Diagram",
    diagram_types=("UMLStatechartDiagram",),
    resources=(
        ResourceSpec(
            name="states",
            types=("UMLState", "UMLSubmachineState"),
            children=(ChildSpec(name="regions", type="UMLRegion", field="regions"),),
        ),
        ResourceSpec(
            name="pseudostates",
            types=("UMLPseudostate",),
            create_fields=(
                FieldSpec(name="pseudostateKind", prop="kind", choices=PSEUDOSTATE_KINDS),
            ),
            serializer=serialize_pseudostate,
        ),
        ResourceSpec(name="final-states", types=("UMLFinalState",)),
    ),
    relations=(
        RelationSpec(
            name="transitions",
            type="UMLTransition",
            create_fields=("guard",),
            update_fields=_updatable("guard"),
        ),
    ),
)

ACTIVITY = FamilyConfiguration(
    prefix="activity",
    label="Activity Diagram",
    diagram_types=("UMLActivityDiagram",),
    resources=(
        ResourceSpec(
            name="actions",
            types=("UMLAction",),
            create_fields=("body",),
            update_fields=_updatable("body"),
            serializer=node_with("body"),
            children=(
                ChildSpec(name="pins", type="UMLInputPin", field="inputs", create_fields=(NAME,)),
                ChildSpec(name="output-pins", type="UMLOutputPin", field="outputs", create_fields=(NAME,)),
            ),
        ),
        ResourceSpec(name="control-nodes", types=CONTROL_NODE_TYPES + ("UMLActivityEdgeConnector",)),
        ResourceSpec(name="object-nodes", types=("UMLObjectNode", "UMLCentralBufferNode", "UMLDataStoreNode")),
        ResourceSpec(name="partitions", types=("UMLActivityPartition",)),
        ResourceSpec(name="regions", types=("UMLExpansionRegion", "UMLInterruptibleActivityRegion")),
    ),
    relations=(
        RelationSpec(name="control-flows", type="UMLControlFlow", update_fields=_updatable("guard")),
        RelationSpec(name="object-flows", type="UMLObjectFlow"),
        RelationSpec(name="exception-handlers", type="UMLExceptionHandler"),
        RelationSpec(name="activity-interrupts", type="UMLActivityInterrupt"),
    ),
)

# Interaction uses and interactions are actions whose name mirrors the
# interaction they stand for.
OVERVIEW = FamilyConfiguration(
    prefix="overview",
    label="Interaction Overview Diagram",
    diagram_types=("UMLInteractionOverviewDiagram",),
    resources=(
        ResourceSpec(name="interaction-uses", types=("UMLInteractionUseInOverview",),
                     model_types=("UMLAction",)),
        ResourceSpec(name="interactions", types=("UMLInteractionInOverview",),
                     model_types=("UMLAction",)),
        ResourceSpec(name="control-nodes", types=CONTROL_NODE_TYPES),
    ),
    relations=(RelationSpec(name="control-flows", type="UMLControlFlow"),),
)

TIMING = FamilyConfiguration(
    prefix="timing",
    label="Timing Diagram",
    diagram_types=("UMLTimingDiagram",),
    resources=(
        ResourceSpec(name="lifelines", types=("UMLLifeline",)),
        ResourceSpec(name="timing-states", types=("UMLTimingState",), model_types=("UMLConstraint",)),
    ),
    relations=(RelationSpec(name="time-segments", type="UMLTimeSegment"),),
)

COMMUNICATION = FamilyConfiguration(
    prefix="communication",
    label="Communication Diagram",
    diagram_types=("UMLCommunicationDiagram",),
    resources=(ResourceSpec(name="lifelines", types=("UMLLifeline",)),),
    relations=(RelationSpec(name="connectors", type="UMLConnector", has_ends=True),),
)

FAMILIES = (
    CLASS, USECASE, OBJECT, COMPONENT, COMPOSITE, DEPLOYMENT, PROFILE, INFOFLOW,
    STATEMACHINE, ACTIVITY, OVERVIEW, TIMING, COMMUNICATION,
)
