"""
Free-form drawing families: wireframes, mind maps and cloud architecture.
"""

from ...core.models import FamilyConfiguration, RelationSpec, ResourceSpec

WIREFRAME = FamilyConfiguration(
    prefix="wireframe",
    label="Wireframe Diagram",
    diagram_types=("WFWireframeDiagram",),
    resources=(
        ResourceSpec(name="frames", types=("WFFrame", "WFMobileFrame", "WFWebFrame", "WFDesktopFrame")),
        ResourceSpec(
            name="widgets",
            types=(
                "WFButton", "WFText", "WFRadio", "WFCheckbox", "WFSwitch", "WFLink",
                "WFTabList", "WFTab", "WFInput", "WFDropdown", "WFPanel", "WFImage",
                "WFSeparator", "WFAvatar", "WFSlider",
            ),
        ),
    ),
)

MINDMAP = FamilyConfiguration(
    prefix="mindmap",
    label="MindMap Diagram",
    diagram_types=("MMMindmapDiagram",),
    resources=(ResourceSpec(name="nodes", types=("MMNode",)),),
    relations=(RelationSpec(name="edges", type="MMEdge"),),
)

AWS = FamilyConfiguration(
    prefix="aws",
    label="AWS Diagram",
    diagram_types=("AWSDiagram",),
    resources=(
        ResourceSpec(
            name="elements",
            types=(
                "AWSGroup", "AWSGenericGroup", "AWSAvailabilityZone", "AWSSecurityGroup",
                "AWSService", "AWSResource", "AWSGeneralResource", "AWSCallout",
            ),
        ),
    ),
    relations=(RelationSpec(name="arrows", type="AWSArrow"),),
)

AZURE = FamilyConfiguration(
    prefix="azure",
    label="Azure Diagram",
    diagram_types=("AzureDiagram",),
    resources=(
        ResourceSpec(name="elements", types=("AzureElement", "AzureGroup", "AzureService", "AzureCallout")),
    ),
    relations=(RelationSpec(name="connectors", type="AzureConnector"),),
)

GCP = FamilyConfiguration(
    prefix="gcp",
    label="GCP Diagram",
    diagram_types=("GCPDiagram",),
    resources=(
        ResourceSpec(name="elements", types=("GCPUser", "GCPZone", "GCPProduct", "GCPService")),
    ),
    relations=(RelationSpec(name="paths", type="GCPPath"),),
)

FAMILIES = (WIREFRAME, MINDMAP, AWS, AZURE, GCP)
