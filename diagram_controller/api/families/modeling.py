"""
Process and systems modeling families: BPMN, SysML, C4 and data flow.
"""

from ...core.models import (
    DEFAULT_UPDATE_FIELDS,
    ChildSpec,
    FamilyConfiguration,
    FieldSpec,
    RelationSpec,
    ResourceSpec,
    TypeAlias,
)
from ..serializers import node_with, serialize_relation

NAME = FieldSpec(name="name")


def _updatable(*extra) -> tuple:
    return DEFAULT_UPDATE_FIELDS + tuple(FieldSpec.parse(f) for f in extra)


def serialize_requirement(elem):
    result = node_with("text")(elem)
    result["requirementId"] = elem.props.get("id", "")
    return result


def serialize_sequence_flow(elem):
    result = serialize_relation(elem)
    result["condition"] = elem.get("condition") or ""
    return result


BPMN = FamilyConfiguration(
    prefix="bpmn",
    label="BPMN Diagram",
    diagram_types=("BPMNDiagram",),
    resources=(
        ResourceSpec(
            name="participants",
            types=("BPMNParticipant",),
            children=(ChildSpec(name="lanes", type="BPMNLane", field="ownedElements"),),
        ),
        ResourceSpec(
            name="tasks",
            types=(
                "BPMNTask", "BPMNSendTask", "BPMNReceiveTask", "BPMNServiceTask",
                "BPMNUserTask", "BPMNManualTask", "BPMNBusinessRuleTask", "BPMNScriptTask",
                "BPMNCallActivity",
            ),
            create_fields=("script",),
            update_fields=_updatable("script"),
            serializer=node_with("script"),
        ),
        ResourceSpec(name="sub-processes", types=("BPMNSubProcess", "BPMNAdHocSubProcess", "BPMNTransaction")),
        ResourceSpec(
            name="events",
            types=(
                "BPMNStartEvent", "BPMNIntermediateThrowEvent", "BPMNIntermediateCatchEvent",
                "BPMNBoundaryEvent", "BPMNEndEvent",
            ),
            children=(
                ChildSpec(name="event-definitions", type="BPMNTimerEventDefinition",
                          field="eventDefinitions", create_fields=(NAME,)),
            ),
        ),
        ResourceSpec(
            name="gateways",
            types=(
                "BPMNExclusiveGateway", "BPMNInclusiveGateway", "BPMNComplexGateway",
                "BPMNParallelGateway", "BPMNEventBasedGateway",
            ),
        ),
        ResourceSpec(
            name="data-objects",
            types=("BPMNDataObject", "BPMNDataStore", "BPMNDataInput", "BPMNDataOutput", "BPMNMessage"),
        ),
        ResourceSpec(name="conversations", types=("BPMNConversation", "BPMNSubConversation", "BPMNCallConversation")),
        ResourceSpec(name="choreographies", types=("BPMNChoreographyTask", "BPMNSubChoreography")),
        ResourceSpec(
            name="annotations",
            types=("BPMNTextAnnotation", "BPMNGroup"),
            create_fields=("text",),
            update_fields=_updatable("text"),
            serializer=node_with("text"),
        ),
    ),
    relations=(
        RelationSpec(
            name="sequence-flows",
            type="BPMNSequenceFlow",
            create_fields=("condition",),
            update_fields=_updatable("condition"),
            serializer=serialize_sequence_flow,
        ),
        RelationSpec(name="message-flows", type="BPMNMessageFlow"),
        RelationSpec(name="associations", type="BPMNAssociation"),
        RelationSpec(name="data-associations", type="BPMNDataAssociation"),
        RelationSpec(name="message-links", type="BPMNMessageLink"),
        RelationSpec(name="conversation-links", type="BPMNConversationLink"),
    ),
)

SYSML = FamilyConfiguration(
    prefix="sysml",
    label="SysML Diagram",
    diagram_types=(
        "SysMLRequirementDiagram", "SysMLBlockDefinitionDiagram",
        "SysMLInternalBlockDiagram", "SysMLParametricDiagram",
    ),
    resources=(
        ResourceSpec(
            name="requirements",
            types=("SysMLRequirement",),
            create_fields=("text", {"name": "requirementId", "prop": "id"}),
            update_fields=_updatable("text", {"name": "requirementId", "prop": "id"}),
            serializer=serialize_requirement,
        ),
        ResourceSpec(
            name="blocks",
            types=("SysMLBlock", "SysMLValueType", "SysMLInterfaceBlock", "SysMLConstraintBlock"),
            children=(
                ChildSpec(name="properties", type="SysMLProperty", field="properties",
                          create_fields=(NAME, FieldSpec(name="type"))),
                ChildSpec(name="operations", type="UMLOperation", field="operations", create_fields=(NAME,)),
                ChildSpec(name="flow-properties", type="SysMLFlowProperty", field="flowProperties",
                          create_fields=(NAME,)),
            ),
        ),
        ResourceSpec(
            name="stakeholders",
            types=("SysMLStakeholder",),
            create_fields=("concern",),
            update_fields=_updatable("concern"),
            serializer=node_with("concern"),
        ),
        ResourceSpec(
            name="viewpoints",
            types=("SysMLViewpoint",),
            create_fields=("purpose", "language", "presentation"),
            update_fields=_updatable("purpose", "language", "presentation"),
            serializer=node_with("purpose", "language", "presentation"),
        ),
        ResourceSpec(name="views", types=("SysMLView",)),
        ResourceSpec(
            name="parts",
            types=(
                "SysMLPart", "SysMLReference", "SysMLValue", "SysMLPort",
                "SysMLConstraintProperty", "SysMLConstraintParameter",
            ),
            # Reference, value and constraint kinds are all built as SysMLProperty
            model_types=("SysMLPart", "SysMLPort", "SysMLProperty"),
            diagram_as_parent=("SysMLConstraintParameter",),
        ),
    ),
    relations=(
        RelationSpec(name="conforms", type="SysMLConform"),
        RelationSpec(name="exposes", type="SysMLExpose"),
        RelationSpec(name="copies", type="SysMLCopy"),
        RelationSpec(name="derive-reqts", type="SysMLDeriveReqt"),
        RelationSpec(name="verifies", type="SysMLVerify"),
        RelationSpec(name="satisfies", type="SysMLSatisfy"),
        RelationSpec(name="refines", type="SysMLRefine"),
        RelationSpec(name="connectors", type="SysMLConnector", has_ends=True),
    ),
)

C4 = FamilyConfiguration(
    prefix="c4",
    label="C4 Diagram",
    diagram_types=("C4Diagram",),
    resources=(
        ResourceSpec(
            name="elements",
            types=(
                "C4Person", "C4SoftwareSystem", "C4Container", "C4ContainerDatabase",
                "C4ContainerWebApp", "C4ContainerDesktopApp", "C4ContainerMobileApp",
                "C4Component", "C4Element",
            ),
            model_types=("C4Person", "C4SoftwareSystem", "C4Container", "C4Component", "C4Element"),
            aliases={
                "C4ContainerDatabase": TypeAlias(factory_type="C4Container", init={"kind": "database"}),
                "C4ContainerWebApp": TypeAlias(factory_type="C4Container", init={"kind": "client-webapp"}),
                "C4ContainerDesktopApp": TypeAlias(factory_type="C4Container", init={"kind": "desktop-app"}),
                "C4ContainerMobileApp": TypeAlias(factory_type="C4Container", init={"kind": "mobile-app"}),
            },
            serializer=node_with("kind"),
        ),
    ),
    relations=(RelationSpec(name="relationships", type="C4Relationship"),),
)

DFD = FamilyConfiguration(
    prefix="dfd",
    label="DFD Diagram",
    diagram_types=("DFDDiagram",),
    resources=(
        ResourceSpec(name="external-entities", types=("DFDExternalEntity",)),
        ResourceSpec(name="processes", types=("DFDProcess",)),
        ResourceSpec(name="data-stores", types=("DFDDataStore",)),
    ),
    relations=(RelationSpec(name="data-flows", type="DFDDataFlow"),),
)

FAMILIES = (BPMN, SYSML, C4, DFD)
